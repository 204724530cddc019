"""Runtime settings for the membership service.

Values default to the environment variables below when set:

    MEMBERSHIP_NODENAME        local node name (short hostname)
    MEMBERSHIP_STORE_DIR       mount point of the replicated config store
    MEMBERSHIP_STATE_DIR       local state (task logs, cluster event log)
    MEMBERSHIP_AUTHKEY         group-communication secret key file
    MEMBERSHIP_LOCAL_CONF      node local copy of the cluster document
    MEMBERSHIP_LOCK_FILE       host-local membership lock file
    MEMBERSHIP_QDEVICE_SOCKET  quorum witness helper status socket
    MEMBERSHIP_LOCK_TIMEOUT    seconds to wait for membership locks
    MEMBERSHIP_WITNESS_TIMEOUT socket timeout of quorum device queries
    MEMBERSHIP_QUORUM_WAIT     seconds a joining node waits for quorum
    MEMBERSHIP_API_PORT        port of the REST API (local and peers)
    MEMBERSHIP_SSH_DIR         ssh configuration directory of root
"""

import os
import socket
from dataclasses import dataclass, field


def _default_nodename() -> str:
    return socket.gethostname().split(".", 1)[0]


@dataclass
class Settings:
    nodename: str = field(default_factory=_default_nodename)
    store_dir: str = "/etc/pve"
    state_dir: str = "/var/lib/pve-cluster"
    authkey_path: str = "/etc/corosync/authkey"
    local_conf_path: str = "/etc/corosync/corosync.json"
    lock_file: str = "/var/lock/pvecm.lock"
    qdevice_socket: str = "/var/run/corosync-qdevice/corosync-qdevice.sock"
    lock_timeout: float = 10.0
    witness_timeout: float = 5.0
    quorum_wait: float = 60.0
    api_port: int = 8006
    ssh_dir: str = "/root/.ssh"
    services: tuple[str, ...] = ("corosync", "pve-cluster")

    @property
    def conf_name(self) -> str:
        return "corosync.conf"

    @property
    def task_dir(self) -> str:
        return os.path.join(self.state_dir, "tasks")

    @property
    def cluster_log_path(self) -> str:
        return os.path.join(self.state_dir, "cluster.log")

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None, **overrides) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ``)."""
        env = os.environ if env is None else env
        values = {}
        mapping = {
            "MEMBERSHIP_NODENAME": ("nodename", str),
            "MEMBERSHIP_STORE_DIR": ("store_dir", str),
            "MEMBERSHIP_STATE_DIR": ("state_dir", str),
            "MEMBERSHIP_AUTHKEY": ("authkey_path", str),
            "MEMBERSHIP_LOCAL_CONF": ("local_conf_path", str),
            "MEMBERSHIP_LOCK_FILE": ("lock_file", str),
            "MEMBERSHIP_QDEVICE_SOCKET": ("qdevice_socket", str),
            "MEMBERSHIP_LOCK_TIMEOUT": ("lock_timeout", float),
            "MEMBERSHIP_WITNESS_TIMEOUT": ("witness_timeout", float),
            "MEMBERSHIP_QUORUM_WAIT": ("quorum_wait", float),
            "MEMBERSHIP_API_PORT": ("api_port", int),
            "MEMBERSHIP_SSH_DIR": ("ssh_dir", str),
        }
        for var, (attr, conv) in mapping.items():
            if env.get(var):
                values[attr] = conv(env[var])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
