"""Add, remove and list cluster nodes.

Every change is one read-modify-write of the shared document executed
inside the membership critical section, so node id allocation and the
address checks always see the list they modify.
"""

import base64
import logging
import os

from ..config.document import NodeEntry
from ..config.links import parse_link
from ..config.store import ConfigStore
from ..config.verify import verify_config
from ..exceptions import (
    ClusterConfigError,
    InvalidConfig,
    LinkMismatch,
    NoQuorum,
    NodeAlreadyExists,
    NotClustered,
    SelfRemoval,
    UnknownNode,
)
from ..host.commands import GroupCommunication
from ..host.network import HostResolver
from ..host.trust import TrustStore
from ..locking.membership_lock import MembershipLockManager
from ..utils.event_logger import EventLogger
from .nodelist import (
    allocate_nodeid,
    check_duplicate_address,
    check_duplicate_nodeid,
    find_node,
    sorted_nodes,
)

logger = logging.getLogger(__name__)


class NodeRegistryEditor:
    def __init__(
        self,
        store: ConfigStore,
        lock_manager: MembershipLockManager,
        nodename: str,
        authkey_path: str,
        *,
        trust: TrustStore | None = None,
        group: GroupCommunication | None = None,
        resolver: HostResolver | None = None,
        cluster_log: EventLogger | None = None,
    ) -> None:
        self.store = store
        self.lock_manager = lock_manager
        self.nodename = nodename
        self.authkey_path = authkey_path
        self.trust = trust
        self.group = group or GroupCommunication()
        self.resolver = resolver or HostResolver(store)
        self.cluster_log = cluster_log

    def _notice(self, message: str) -> None:
        logger.info(message)
        if self.cluster_log is not None:
            self.cluster_log.log(f"notice: {message}")

    def _read_authkey(self) -> str:
        if not os.path.exists(self.authkey_path):
            raise NotClustered("no authentication key available")
        with open(self.authkey_path, "rb") as f:
            return base64.b64encode(f.read()).decode("ascii")

    def _check_quorum(self) -> None:
        if not self.store.has_quorum():
            raise NoQuorum("cluster not ready - no quorum?")

    # operations -------------------------------------------------------
    def add_node(
        self,
        name: str,
        *,
        nodeid: int | None = None,
        votes: int | None = None,
        link0: str | None = None,
        link1: str | None = None,
        force: bool = False,
    ) -> dict:
        """Add ``name`` to the node list.

        Returns the shared secret (base64), the updated document and the
        non fatal warnings collected on the way.
        """
        self._check_quorum()

        def edit():
            doc = self.store.read_document()
            errors, warnings = verify_config(doc, self.resolver.resolve)
            if errors:
                raise InvalidConfig.from_results(errors, warnings)

            nodelist = doc.nodelist
            interfaces = doc.totem.interface
            l0 = parse_link(link0)
            l1 = parse_link(link1)

            check_duplicate_address(nodelist, name, l0)
            check_duplicate_address(nodelist, name, l1)

            # FIXME: only links 0 and 1 are handled, knet supports up to 8
            if l0 is None and 0 in interfaces:
                address0 = name
            else:
                address0 = l0.address if l0 is not None else None

            if l1 is not None and 1 not in interfaces:
                raise LinkMismatch(
                    "corosync: using 'link1' parameter needs a interface with"
                    " linknumber '1' configured!"
                )
            if 1 in interfaces and l1 is None:
                raise LinkMismatch(
                    "corosync: totem interface with linknumber 1 configured but"
                    " 'link1' parameter not defined!"
                )

            new_id = nodeid
            new_votes = votes
            existing = nodelist.get(name)
            if existing is not None:
                new_id = new_id or existing.nodeid
                new_votes = existing.quorum_votes if new_votes is None else new_votes
                if force and existing.nodeid == new_id and existing.quorum_votes == new_votes:
                    logger.info("forcing overwrite of configured node '%s'", name)
                else:
                    raise NodeAlreadyExists(f"can't add existing node '{name}'")
            elif not new_id:
                new_id = allocate_nodeid(nodelist)
            else:
                check_duplicate_nodeid(nodelist, name, new_id)
            if new_votes is None:
                new_votes = 1

            authkey = self._read_authkey()

            if self.trust is not None:
                try:
                    self.trust.merge_keys()
                except (OSError, ClusterConfigError) as exc:
                    logger.warning("unable to merge ssh keys: %s", exc)
                    warnings.append(f"warning: unable to merge ssh keys: {exc}")

            entry = NodeEntry(name=name, nodeid=new_id, quorum_votes=new_votes)
            if address0 is not None:
                entry.links[0] = address0
            if l1 is not None:
                entry.links[1] = l1.address

            self._notice(f"adding node {name} to cluster")
            new_doc = doc.copy()
            new_doc.nodelist[name] = entry
            written = self.store.write_document(new_doc, expected_digest=doc.digest)
            return {
                "corosync_authkey": authkey,
                "corosync_conf": written.to_dict(),
                "warnings": warnings,
            }

        return self.lock_manager.run(edit)

    def remove_node(self, identifier: str) -> None:
        """Remove the node named ``identifier`` or owning that address."""
        if identifier == self.nodename:
            raise SelfRemoval("Cannot delete myself from cluster!")
        self._check_quorum()

        def edit():
            doc = self.store.read_document()
            if doc is None:
                raise NotClustered("node is not in a cluster")
            entry = find_node(doc.nodelist, identifier)
            if entry is None:
                raise UnknownNode(
                    f"Node/IP: {identifier} is not a known host of the cluster."
                )
            if entry.name == self.nodename:
                raise SelfRemoval("Cannot delete myself from cluster!")
            self._notice(f"deleting node {entry.name} from cluster")
            new_doc = doc.copy()
            del new_doc.nodelist[entry.name]
            self.store.write_document(new_doc, expected_digest=doc.digest)
            try:
                self.group.evict(entry.nodeid)
            except ClusterConfigError as exc:
                logger.warning("could not evict node %s (id %d): %s", entry.name, entry.nodeid, exc)

        self.lock_manager.run(edit)

    def list_nodes(self) -> list[dict]:
        doc = self.store.read_document()
        if doc is None:
            return []
        return [dict(entry.to_dict(), node=entry.name) for entry in sorted_nodes(doc.nodelist)]

    def join_info(self, node: str | None = None) -> dict:
        """Data a joining node needs to contact and verify this cluster."""
        nodename = node or self.nodename
        self.store.update(force=True)
        doc = self.store.read_document()
        if doc is None:
            raise NotClustered("node is not in a cluster, no join info available!")
        if nodename not in doc.nodelist:
            raise UnknownNode(f"unknown node '{nodename}'")
        nodes = []
        for entry in sorted_nodes(doc.nodelist):
            data = entry.to_dict()
            data["pve_fp"] = self.trust.fingerprint(entry.name) if self.trust else None
            try:
                data["pve_addr"] = self.resolver.node_ip(entry.name)
            except UnknownNode as exc:
                logger.warning("%s", exc)
                data["pve_addr"] = None
            nodes.append(data)
        return {
            "nodelist": nodes,
            "preferred_node": nodename,
            "totem": doc.totem.to_dict(),
            "config_digest": doc.digest,
        }

    def totem(self) -> dict:
        doc = self.store.read_document()
        return doc.totem.to_dict() if doc is not None else {}
