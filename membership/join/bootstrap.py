import logging
import os
import re

from ..config.document import create_conf
from ..config.links import extract_links
from ..config.store import ConfigStore
from ..exceptions import AlreadyClustered, InvalidParameter, NotClustered
from ..host.commands import ServiceManager, generate_authkey
from ..host.network import HostResolver
from ..host.trust import TrustStore
from ..locking.local_lock import LocalMutexGuard
from ..tasks.manager import TaskManager

logger = logging.getLogger(__name__)

_CLUSTER_NAME = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9\-]*[a-zA-Z0-9])?$")


def validate_cluster_name(name: str) -> str:
    if not name or len(name) > 15 or not _CLUSTER_NAME.match(name):
        raise InvalidParameter(f"invalid cluster name '{name}'")
    return name


class ClusterBootstrap:
    """Create a brand new single node cluster on this host."""

    def __init__(
        self,
        store: ConfigStore,
        local_guard: LocalMutexGuard,
        tasks: TaskManager,
        nodename: str,
        authkey_path: str,
        *,
        trust: TrustStore,
        services: ServiceManager,
        resolver: HostResolver,
        service_names=("corosync", "pve-cluster"),
        lock_timeout: float = 10.0,
    ) -> None:
        self.store = store
        self.local_guard = local_guard
        self.tasks = tasks
        self.nodename = nodename
        self.authkey_path = authkey_path
        self.trust = trust
        self.services = services
        self.resolver = resolver
        self.service_names = tuple(service_names)
        self.lock_timeout = lock_timeout

    def create(
        self,
        cluster_name: str,
        *,
        nodeid: int | None = None,
        votes: int | None = None,
        link0: str | None = None,
        link1: str | None = None,
        user: str = "root@pam",
    ) -> str:
        """Schedule cluster creation and return the task id."""
        if self.store.exists():
            raise AlreadyClustered(f"cluster config '{self.store.location}' already exists")
        validate_cluster_name(cluster_name)
        links = extract_links({"link0": link0, "link1": link1})

        def worker(log):
            self.local_guard.run(
                self.lock_timeout, self._create, log, cluster_name, nodeid, votes, links
            )

        return self.tasks.submit("clustercreate", worker, target=cluster_name, user=user)

    def _create(self, log, cluster_name, nodeid, votes, links) -> None:
        if self.store.exists():
            raise AlreadyClustered(f"cluster config '{self.store.location}' already exists")

        self.trust.setup()

        if generate_authkey(self.authkey_path):
            log(f"generated authentication key {self.authkey_path}")
        if not os.path.exists(self.authkey_path):
            raise NotClustered("no authentication key available")

        local_ip = self.resolver.node_ip(self.nodename)
        doc = create_conf(
            self.nodename,
            cluster_name,
            local_ip,
            nodeid=nodeid,
            votes=votes,
            links=links,
        )

        log(f"Writing corosync config to {self.store.location}")
        self.store.write_document(doc)

        self.trust.merge_keys()
        self.trust.prepare_node(self.nodename, local_ip)
        self.trust.merge_known_hosts(self.nodename, local_ip)

        log("Restart corosync and cluster filesystem")
        self.services.restart(self.service_names)
        logger.info("created cluster '%s' on %s", cluster_name, self.nodename)
