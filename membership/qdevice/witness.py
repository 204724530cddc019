import logging
import os
import re
import socket
import stat

from ..exceptions import WitnessUnavailable

logger = logging.getLogger(__name__)

STATUS_QUERY = b"status verbose\n"

STATUS_KEYS = frozenset(
    {
        "Algorithm",
        "Echo reply",
        "Last poll call",
        "Model",
        "QNetd host",
        "State",
        "Tie-breaker",
    }
)

_LINE = re.compile(r"^(.*?)\s*:\s*(.*)$")


def parse_status(lines) -> dict[str, str]:
    """Pick the allow-listed ``key : value`` pairs out of a status reply.

    Lines starting with whitespace belong to a detail section and are
    skipped.
    """
    result = {}
    for line in lines:
        line = line.rstrip("\r\n")
        if not line or line[0].isspace():
            continue
        m = _LINE.match(line)
        if m and m.group(1) in STATUS_KEYS:
            result[m.group(1)] = m.group(2)
    return result


class QuorumWitnessMonitor:
    """Query the local quorum device helper over its status socket."""

    def __init__(self, socket_path: str, timeout: float = 5.0) -> None:
        self.socket_path = socket_path
        self.timeout = timeout

    def _socket_present(self) -> bool:
        try:
            return stat.S_ISSOCK(os.stat(self.socket_path).st_mode)
        except FileNotFoundError:
            return False

    def get_status(self) -> dict[str, str]:
        if not self._socket_present():
            return {}
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(self.timeout)
                sock.connect(self.socket_path)
                sock.sendall(STATUS_QUERY)
                with sock.makefile("r", encoding="utf-8", errors="replace") as reply:
                    return parse_status(reply)
        except OSError as exc:
            logger.warning("quorum device status query failed: %s", exc)
            raise WitnessUnavailable(f"unable to query quorum device: {exc}")
