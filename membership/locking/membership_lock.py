import logging
from contextlib import ExitStack, contextmanager

from ..config.store import ConfigStore
from .local_lock import LocalMutexGuard

logger = logging.getLogger(__name__)


class ClusterLockPolicy:
    """Decide whether an edit needs the cluster wide lock.

    A node alone in the cluster has no peer it could race with, so only the
    local lock is taken while at most ``solo_members`` members are online.
    """

    def __init__(self, solo_members: int = 1) -> None:
        self.solo_members = solo_members

    def needs_cluster_lock(self, store: ConfigStore) -> bool:
        return len(store.members()) > self.solo_members


class MembershipLockManager:
    """Local lock plus, on multi node clusters, the store's named lock."""

    def __init__(
        self,
        local_guard: LocalMutexGuard,
        store: ConfigStore,
        *,
        lock_name: str = "corosync.conf",
        timeout: float = 10.0,
        policy: ClusterLockPolicy | None = None,
    ) -> None:
        self.local_guard = local_guard
        self.store = store
        self.lock_name = lock_name
        self.timeout = timeout
        self.policy = policy or ClusterLockPolicy()

    @contextmanager
    def locked(self, timeout: float | None = None):
        timeout = self.timeout if timeout is None else timeout
        with ExitStack() as stack:
            stack.enter_context(self.local_guard.acquire(timeout))
            self.store.update(force=True)
            if self.policy.needs_cluster_lock(self.store):
                logger.debug("taking cluster lock %s", self.lock_name)
                stack.enter_context(self.store.lock(self.lock_name, timeout))
            yield

    def run(self, fn, *args, timeout: float | None = None, **kwargs):
        """Run ``fn`` inside the membership critical section."""
        with self.locked(timeout):
            return fn(*args, **kwargs)
