from .local_lock import LocalMutexGuard
from .membership_lock import ClusterLockPolicy, MembershipLockManager

__all__ = ["LocalMutexGuard", "ClusterLockPolicy", "MembershipLockManager"]
