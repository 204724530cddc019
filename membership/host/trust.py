"""SSH and TLS trust material shared through the config store."""

import hashlib
import logging
import os
import ssl

from .commands import run_command

logger = logging.getLogger(__name__)


def cert_fingerprint(pem: str) -> str:
    """SHA-256 fingerprint of a PEM certificate as ``AA:BB:..``."""
    der = ssl.PEM_cert_to_DER_cert(pem)
    digest = hashlib.sha256(der).hexdigest().upper()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


def normalize_fingerprint(fp: str) -> str:
    return fp.strip().upper()


class TrustStore:
    """Merge ssh keys and host keys of all nodes into the shared store."""

    def __init__(
        self,
        store_dir: str,
        ssh_dir: str = "/root/.ssh",
        host_key_path: str = "/etc/ssh/ssh_host_rsa_key.pub",
        runner=run_command,
    ) -> None:
        self.store_dir = store_dir
        self.ssh_dir = ssh_dir
        self.host_key_path = host_key_path
        self.runner = runner
        self.authorized_keys = os.path.join(store_dir, "priv", "authorized_keys")
        self.known_hosts = os.path.join(store_dir, "priv", "known_hosts")

    def node_dir(self, nodename: str) -> str:
        return os.path.join(self.store_dir, "nodes", nodename)

    def setup(self) -> None:
        """Make sure root has an ssh key pair."""
        os.makedirs(self.ssh_dir, mode=0o700, exist_ok=True)
        key = os.path.join(self.ssh_dir, "id_rsa")
        if not os.path.exists(key):
            self.runner(
                ["ssh-keygen", "-t", "rsa", "-N", "", "-f", key],
                errmsg="ssh-keygen failed",
            )

    def merge_keys(self) -> None:
        """Add root's public key to the cluster wide authorized_keys."""
        lines = _read_lines(self.authorized_keys)
        pub = os.path.join(self.ssh_dir, "id_rsa.pub")
        local = _read_lines(pub) + _read_lines(os.path.join(self.ssh_dir, "authorized_keys"))
        changed = False
        for line in local:
            if line not in lines:
                lines.append(line)
                changed = True
        if changed:
            _write_lines(self.authorized_keys, lines)

    def merge_known_hosts(self, nodename: str, address: str) -> None:
        """Record this host's key for ``nodename`` and ``address``."""
        keys = _read_lines(self.host_key_path)
        if not keys:
            logger.warning("no ssh host key found at %s", self.host_key_path)
            return
        key = " ".join(keys[0].split()[:2])
        lines = [
            line
            for line in _read_lines(self.known_hosts)
            if line.split(" ", 1)[0] not in (nodename, address)
        ]
        lines.append(f"{nodename} {key}")
        lines.append(f"{address} {key}")
        _write_lines(self.known_hosts, lines)

    def prepare_node(self, nodename: str, address: str) -> None:
        """Create the per node directory in the shared store."""
        os.makedirs(self.node_dir(nodename), exist_ok=True)
        logger.debug("prepared node directory for %s (%s)", nodename, address)

    def fingerprint(self, nodename: str) -> str | None:
        path = os.path.join(self.node_dir(nodename), "pve-ssl.pem")
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="ascii") as f:
            return cert_fingerprint(f.read())


def _read_lines(path: str) -> list[str]:
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [line.rstrip("\n") for line in f if line.strip()]


def _write_lines(path: str, lines: list[str]) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    os.replace(tmp, path)
