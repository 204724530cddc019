"""Wire the membership components together for one node."""

import logging

from .config.store import ConfigStore, FileConfigStore
from .host.commands import GroupCommunication, ServiceManager, run_command
from .host.network import HostResolver
from .host.trust import TrustStore
from .join.bootstrap import ClusterBootstrap
from .join.join import ClusterJoiner
from .locking.local_lock import LocalMutexGuard
from .locking.membership_lock import MembershipLockManager
from .qdevice.witness import QuorumWitnessMonitor
from .registry.editor import NodeRegistryEditor
from .settings import Settings
from .tasks.manager import TaskManager
from .utils.event_logger import EventLogger

logger = logging.getLogger(__name__)


class ClusterCoordinator:
    """Entry point used by the API for every membership operation.

    Collaborators default to the host backed implementations and can be
    replaced, e.g. by tests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: ConfigStore | None = None,
        runner=run_command,
        resolver: HostResolver | None = None,
        group: GroupCommunication | None = None,
        services: ServiceManager | None = None,
        trust: TrustStore | None = None,
        client_factory=None,
    ) -> None:
        self.settings = settings
        self.nodename = settings.nodename
        self.store = store or FileConfigStore(settings.store_dir, settings.conf_name)
        self.resolver = resolver or HostResolver(self.store)
        self.group = group or GroupCommunication(runner)
        self.services = services or ServiceManager(runner)
        self.trust = trust or TrustStore(settings.store_dir, settings.ssh_dir, runner=runner)

        self.cluster_log = EventLogger(settings.cluster_log_path)
        self.tasks = TaskManager(settings.task_dir, self.nodename)
        self.local_guard = LocalMutexGuard(settings.lock_file)
        self.lock_manager = MembershipLockManager(
            self.local_guard,
            self.store,
            lock_name=settings.conf_name,
            timeout=settings.lock_timeout,
        )
        self.registry = NodeRegistryEditor(
            self.store,
            self.lock_manager,
            self.nodename,
            settings.authkey_path,
            trust=self.trust,
            group=self.group,
            resolver=self.resolver,
            cluster_log=self.cluster_log,
        )
        self.bootstrap = ClusterBootstrap(
            self.store,
            self.local_guard,
            self.tasks,
            self.nodename,
            settings.authkey_path,
            trust=self.trust,
            services=self.services,
            resolver=self.resolver,
            service_names=settings.services,
            lock_timeout=settings.lock_timeout,
        )
        self.joiner = ClusterJoiner(
            self.store,
            self.local_guard,
            self.tasks,
            self.nodename,
            settings.authkey_path,
            settings.local_conf_path,
            trust=self.trust,
            services=self.services,
            resolver=self.resolver,
            service_names=settings.services,
            lock_timeout=settings.lock_timeout,
            quorum_wait=settings.quorum_wait,
            api_port=settings.api_port,
            client_factory=client_factory,
        )
        self.witness = QuorumWitnessMonitor(settings.qdevice_socket, settings.witness_timeout)
        logger.info("membership coordinator ready on node %s", self.nodename)

    # facade -----------------------------------------------------------
    def create_cluster(self, cluster_name: str, **params) -> str:
        return self.bootstrap.create(cluster_name, **params)

    def join_cluster(self, hostname: str, password: str, fingerprint: str, **params) -> str:
        return self.joiner.join(hostname, password, fingerprint, **params)

    def add_node(self, name: str, **params) -> dict:
        return self.registry.add_node(name, **params)

    def remove_node(self, identifier: str) -> None:
        self.registry.remove_node(identifier)

    def list_nodes(self) -> list[dict]:
        return self.registry.list_nodes()

    def join_info(self, node: str | None = None) -> dict:
        return self.registry.join_info(node)

    def totem(self) -> dict:
        return self.registry.totem()

    def qdevice_status(self) -> dict[str, str]:
        return self.witness.get_status()

    def shutdown(self) -> None:
        self.tasks.shutdown()
        self.cluster_log.close()
