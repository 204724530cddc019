import fcntl
import logging
import os
import time
from contextlib import contextmanager

from ..exceptions import LockTimeout

logger = logging.getLogger(__name__)


class LocalMutexGuard:
    """Host local exclusive lock on a well-known lock file.

    Uses ``flock`` so concurrent holders are excluded whether they live in
    other threads of this process or in other processes on the host.
    """

    def __init__(self, path: str, poll_interval: float = 0.1) -> None:
        self.path = path
        self.poll_interval = poll_interval

    @contextmanager
    def acquire(self, timeout: float):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            deadline = time.monotonic() + timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except (BlockingIOError, PermissionError):
                    if time.monotonic() >= deadline:
                        raise LockTimeout(
                            f"can't lock file '{self.path}' - got timeout"
                        )
                    time.sleep(self.poll_interval)
            logger.debug("acquired local lock %s", self.path)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug("released local lock %s", self.path)
        finally:
            os.close(fd)

    def run(self, timeout: float, fn, *args, **kwargs):
        """Run ``fn`` while holding the lock and return its result."""
        with self.acquire(timeout):
            return fn(*args, **kwargs)
