"""Access to the replicated cluster configuration store.

The store behaves like a cluster file system: every node sees the same
files, and a named lock taken by one node excludes all other nodes. The
file based implementation follows that layout:

    <base>/corosync.conf          shared configuration document (JSON)
    <base>/.members               live membership and quorum of the cluster
    <base>/priv/lock/<name>       cluster wide named locks (mkdir based, with an
                                  ``owner`` file naming the holder)
"""

import json
import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass

from ..exceptions import LockTimeout
from .document import ClusterConfigDocument

logger = logging.getLogger(__name__)

# locks left behind by a crashed holder expire after this many seconds
LOCK_EXPIRY = 120.0

LOCK_OWNER_FILE = "owner"


@dataclass(frozen=True)
class LockToken:
    name: str
    owner: str
    acquired_at: float


class ConfigStore(ABC):
    """Distributed mutex plus versioned document."""

    @abstractmethod
    def update(self, force: bool = False) -> None:
        """Refresh the cached cluster state."""

    @abstractmethod
    def members(self) -> dict[str, dict]:
        """Return the currently online cluster members keyed by node name."""

    @abstractmethod
    def has_quorum(self) -> bool:
        ...

    @abstractmethod
    def exists(self) -> bool:
        """Return ``True`` when a configuration document is present."""

    @abstractmethod
    def read_document(self) -> ClusterConfigDocument | None:
        ...

    @abstractmethod
    def write_document(
        self,
        doc: ClusterConfigDocument,
        expected_digest: str | None = None,
        *,
        bump_version: bool = True,
    ) -> ClusterConfigDocument:
        """Persist ``doc`` and return it with its new digest."""

    @abstractmethod
    def acquire_lock(self, name: str, timeout: float) -> LockToken:
        ...

    @abstractmethod
    def release_lock(self, token: LockToken) -> None:
        ...

    @property
    def location(self) -> str:
        return "cluster config store"

    def member_address(self, name: str) -> str | None:
        info = self.members().get(name) or {}
        return info.get("ip")

    @contextmanager
    def lock(self, name: str, timeout: float):
        token = self.acquire_lock(name, timeout)
        try:
            yield token
        finally:
            self.release_lock(token)


class FileConfigStore(ConfigStore):
    """Config store backed by a (cluster) file system mount."""

    def __init__(self, base_path: str, conf_name: str = "corosync.conf") -> None:
        self.base_path = base_path
        self.conf_name = conf_name
        self.conf_path = os.path.join(base_path, conf_name)
        self.members_path = os.path.join(base_path, ".members")
        self.lock_dir = os.path.join(base_path, "priv", "lock")
        self._members_cache: dict | None = None

    @property
    def location(self) -> str:
        return self.conf_path

    # cluster state ----------------------------------------------------
    def _load_members(self) -> dict:
        if not os.path.exists(self.members_path):
            return {}
        with open(self.members_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def update(self, force: bool = False) -> None:
        if force or self._members_cache is None:
            self._members_cache = self._load_members()

    def members(self) -> dict[str, dict]:
        self.update()
        nodes = self._members_cache.get("nodelist") or {}
        return {name: info for name, info in nodes.items() if info.get("online")}

    def has_quorum(self) -> bool:
        self.update()
        cluster = self._members_cache.get("cluster")
        # a standalone node is always quorate
        if not cluster:
            return True
        return bool(cluster.get("quorate"))

    def write_members(self, data: dict) -> None:
        """Replace the membership view (written by the cluster daemon)."""
        self._atomic_write(self.members_path, json.dumps(data, indent=2))
        self._members_cache = data

    # document ---------------------------------------------------------
    def exists(self) -> bool:
        return os.path.exists(self.conf_path)

    def read_document(self) -> ClusterConfigDocument | None:
        if not self.exists():
            return None
        with open(self.conf_path, "r", encoding="utf-8") as f:
            text = f.read()
        return ClusterConfigDocument.parse(text)

    def write_document(
        self,
        doc: ClusterConfigDocument,
        expected_digest: str | None = None,
        *,
        bump_version: bool = True,
    ) -> ClusterConfigDocument:
        if expected_digest is not None:
            current = self.read_document()
            if current is not None and current.digest != expected_digest:
                logger.warning(
                    "%s changed since it was read (digest %s != %s)",
                    self.conf_name,
                    current.digest,
                    expected_digest,
                )
        doc = doc.copy()
        if bump_version:
            doc.totem.config_version += 1
        text = doc.serialize()
        self._atomic_write(self.conf_path, text)
        doc.digest = doc.compute_digest()
        logger.debug("wrote %s (config_version %d)", self.conf_path, doc.totem.config_version)
        return doc

    def _atomic_write(self, path: str, text: str) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp = f"{path}.new"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)

    # cluster wide lock ------------------------------------------------
    def _owner_path(self, name: str) -> str:
        return os.path.join(self.lock_dir, name, LOCK_OWNER_FILE)

    def _read_owner(self, name: str) -> str | None:
        try:
            with open(self._owner_path(name), "r", encoding="ascii") as f:
                return f.read().strip()
        except FileNotFoundError:
            return None

    def acquire_lock(self, name: str, timeout: float) -> LockToken:
        os.makedirs(self.lock_dir, exist_ok=True)
        path = os.path.join(self.lock_dir, name)
        deadline = time.monotonic() + timeout
        while True:
            try:
                os.mkdir(path)
            except FileExistsError:
                self._expire_stale(path)
            else:
                owner = uuid.uuid4().hex
                with open(self._owner_path(name), "w", encoding="ascii") as f:
                    f.write(owner)
                return LockToken(name=name, owner=owner, acquired_at=time.time())
            if time.monotonic() >= deadline:
                raise LockTimeout(f"cfs-lock '{name}' error: got lock request timeout")
            time.sleep(0.1)

    def _remove_lock(self, path: str) -> None:
        try:
            os.remove(os.path.join(path, LOCK_OWNER_FILE))
        except FileNotFoundError:
            pass
        try:
            os.rmdir(path)
        except FileNotFoundError:
            pass

    def _expire_stale(self, path: str) -> None:
        try:
            age = time.time() - os.stat(path).st_mtime
        except FileNotFoundError:
            return
        if age > LOCK_EXPIRY:
            logger.warning("removing expired cluster lock %s", path)
            self._remove_lock(path)

    def release_lock(self, token: LockToken) -> None:
        """Remove the lock unless it expired and was taken by someone else."""
        owner = self._read_owner(token.name)
        if owner is None:
            logger.warning("cluster lock %s already released", token.name)
            return
        if owner != token.owner:
            logger.warning(
                "cluster lock %s expired and is now held by another owner, not releasing",
                token.name,
            )
            return
        self._remove_lock(os.path.join(self.lock_dir, token.name))
