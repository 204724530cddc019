import base64
import logging
import os
import time

from ..config.document import ClusterConfigDocument
from ..config.links import extract_links, print_link
from ..config.store import ConfigStore
from ..exceptions import (
    AlreadyClustered,
    InvalidParameter,
    NoQuorum,
    RemoteRequestFailed,
    TaskError,
)
from ..host.commands import ServiceManager
from ..host.network import HostResolver
from ..host.trust import TrustStore
from ..locking.local_lock import LocalMutexGuard
from ..tasks.manager import TaskManager
from .remote import RemoteClusterClient

logger = logging.getLogger(__name__)


class ClusterJoiner:
    """Join this host into an existing cluster through one of its members."""

    def __init__(
        self,
        store: ConfigStore,
        local_guard: LocalMutexGuard,
        tasks: TaskManager,
        nodename: str,
        authkey_path: str,
        local_conf_path: str,
        *,
        trust: TrustStore,
        services: ServiceManager,
        resolver: HostResolver,
        service_names=("corosync", "pve-cluster"),
        lock_timeout: float = 10.0,
        quorum_wait: float = 60.0,
        api_port: int = 8006,
        client_factory=None,
    ) -> None:
        self.store = store
        self.local_guard = local_guard
        self.tasks = tasks
        self.nodename = nodename
        self.authkey_path = authkey_path
        self.local_conf_path = local_conf_path
        self.trust = trust
        self.services = services
        self.resolver = resolver
        self.service_names = tuple(service_names)
        self.lock_timeout = lock_timeout
        self.quorum_wait = quorum_wait
        self.api_port = api_port
        self.client_factory = client_factory or self._default_client

    def _default_client(self, hostname: str, password: str, fingerprint: str) -> RemoteClusterClient:
        return RemoteClusterClient(
            hostname, self.api_port, password=password, fingerprint=fingerprint
        )

    def join(
        self,
        hostname: str,
        password: str,
        fingerprint: str,
        *,
        nodeid: int | None = None,
        votes: int | None = None,
        link0: str | None = None,
        link1: str | None = None,
        force: bool = False,
        user: str = "root@pam",
    ) -> str:
        """Schedule the join and return the task id."""
        if not hostname:
            raise InvalidParameter("hostname is required")
        if not fingerprint:
            raise InvalidParameter("fingerprint of the peer certificate is required")
        links = extract_links({"link0": link0, "link1": link1})

        def worker(log):
            self.local_guard.run(
                self.lock_timeout,
                self._join,
                log,
                hostname,
                password,
                fingerprint,
                links,
                nodeid,
                votes,
                force,
            )

        return self.tasks.submit("clusterjoin", worker, user=user)

    def _assert_joinable(self, log, force: bool) -> None:
        problems = []
        if self.store.exists():
            problems.append(f"cluster config '{self.store.location}' already exists")
        if os.path.exists(self.authkey_path):
            problems.append(f"authentication key '{self.authkey_path}' already exists")
        if os.path.exists(self.local_conf_path):
            problems.append(f"corosync config '{self.local_conf_path}' already exists")
        if not problems:
            return
        for problem in problems:
            log(f"* {problem}")
        if not force:
            raise AlreadyClustered("this host already has cluster configuration, use force to override")
        log("WARNING : detected errors, continuing anyway since force is set")

    def _join(self, log, hostname, password, fingerprint, links, nodeid, votes, force) -> None:
        self._assert_joinable(log, force)
        local_ip = self.resolver.node_ip(self.nodename)

        log(f"Establishing API connection with host '{hostname}'")
        with self.client_factory(hostname, password, fingerprint) as client:
            client.login()
            log("Login succeeded.")

            args = {}
            if force:
                args["force"] = True
            if nodeid:
                args["nodeid"] = nodeid
            if votes is not None:
                args["votes"] = votes
            for num, link in sorted(links.items()):
                args[f"link{num}"] = print_link(link)
            if not links:
                args["link0"] = local_ip

            log("Request addition of this node")
            try:
                res = client.add_node(self.nodename, args)
            except RemoteRequestFailed as exc:
                log(f"An error occurred on the cluster node: {exc.message}")
                for key in sorted(exc.errors):
                    symbol = "*" if key.startswith("warning") else "!"
                    log(f"{symbol} {exc.errors[key]}")
                raise TaskError("Cluster join aborted!")

        for warning in res.get("warnings") or []:
            log(f"cluster: {warning}")

        log("Join request OK, finishing setup locally")
        self._finish_join(log, res, local_ip)

    def _finish_join(self, log, res: dict, local_ip: str) -> None:
        authkey = base64.b64decode(res["corosync_authkey"])
        doc = ClusterConfigDocument.from_dict(res["corosync_conf"])

        _write_file(self.authkey_path, authkey, 0o400)
        _write_file(self.local_conf_path, doc.serialize().encode("utf-8"), 0o644)

        log("stopping pve-cluster service")
        self.services.stop(["pve-cluster"])
        self.store.write_document(doc, bump_version=False)
        log("starting " + " ".join(self.service_names))
        self.services.start(self.service_names)

        self._wait_for_quorum(log)

        self.trust.merge_keys()
        self.trust.prepare_node(self.nodename, local_ip)
        self.trust.merge_known_hosts(self.nodename, local_ip)
        log(f"successfully added node '{self.nodename}' to cluster.")

    def _wait_for_quorum(self, log) -> None:
        deadline = time.monotonic() + self.quorum_wait
        announced = False
        while True:
            self.store.update(force=True)
            if self.store.has_quorum():
                break
            if time.monotonic() >= deadline:
                raise NoQuorum("timeout waiting for quorum")
            if not announced:
                log("waiting for quorum...")
                announced = True
            time.sleep(1)
        if announced:
            log("OK")


def _write_file(path: str, data: bytes, mode: int) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = f"{path}.tmp"
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.replace(tmp, path)
