"""Thin wrappers around the host commands the coordinator drives."""

import logging
import os
import secrets
import subprocess

from ..exceptions import CommandError

logger = logging.getLogger(__name__)

AUTHKEY_SIZE = 128


def run_command(cmd: list[str], *, errmsg: str | None = None, timeout: float | None = None) -> str:
    """Run ``cmd`` and return its stdout, raising ``CommandError`` on failure."""
    logger.debug("running %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise CommandError(f"{errmsg or 'command failed'}: {exc}")
    if proc.returncode != 0:
        detail = proc.stderr.strip() or f"exit code {proc.returncode}"
        raise CommandError(f"{errmsg or ' '.join(cmd)}: {detail}")
    return proc.stdout


class ServiceManager:
    """Start/stop/restart system services through systemctl."""

    def __init__(self, runner=run_command) -> None:
        self.runner = runner

    def _systemctl(self, action: str, services) -> None:
        services = list(services)
        self.runner(
            ["systemctl", action, *services],
            errmsg=f"{action} of {' '.join(services)} failed",
        )

    def restart(self, services) -> None:
        self._systemctl("restart", services)

    def start(self, services) -> None:
        self._systemctl("start", services)

    def stop(self, services) -> None:
        self._systemctl("stop", services)

    def reload_or_restart(self, services) -> None:
        self._systemctl("reload-or-restart", services)


class GroupCommunication:
    """Live control of the group-communication daemon."""

    def __init__(self, runner=run_command) -> None:
        self.runner = runner

    def evict(self, nodeid: int) -> None:
        """Tell the running daemon to drop ``nodeid`` from the membership."""
        self.runner(
            ["corosync-cfgtool", "-k", str(nodeid)],
            errmsg=f"unable to evict node {nodeid}",
        )


def generate_authkey(path: str) -> bool:
    """Create the shared secret at ``path`` unless it exists.

    Returns ``True`` when a new key was written.
    """
    if os.path.exists(path):
        return False
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o400)
    with os.fdopen(fd, "wb") as f:
        f.write(secrets.token_bytes(AUTHKEY_SIZE))
    logger.info("generated new authentication key %s", path)
    return True
