"""Error types raised by the membership coordinator.

Each error carries the HTTP status used by the API layer and an optional
``errors`` mapping with per-item details.
"""


class ClusterConfigError(Exception):
    """Base class for every membership error."""

    status_code = 500

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = dict(errors) if errors else {}

    def to_dict(self) -> dict:
        data = {"detail": self.message}
        if self.errors:
            data["errors"] = dict(self.errors)
        return data


class InvalidParameter(ClusterConfigError):
    status_code = 400


class AlreadyClustered(ClusterConfigError):
    status_code = 409


class NotClustered(ClusterConfigError):
    status_code = 400


class LockTimeout(ClusterConfigError):
    status_code = 503


class InvalidConfig(ClusterConfigError):
    """The stored document failed verification.

    ``errors`` holds ``warningN``/``errorN`` keys in the order they were
    reported.
    """

    status_code = 500

    @classmethod
    def from_results(cls, errors: list[str], warnings: list[str]) -> "InvalidConfig":
        items: dict[str, str] = {}
        for i, msg in enumerate(warnings):
            items[f"warning{i}"] = msg
        for i, msg in enumerate(errors):
            items[f"error{i}"] = msg
        return cls("invalid corosync.conf", errors=items)


class DuplicateAddress(ClusterConfigError):
    status_code = 400


class DuplicateNodeId(ClusterConfigError):
    status_code = 409


class LinkMismatch(ClusterConfigError):
    status_code = 400


class NodeAlreadyExists(ClusterConfigError):
    status_code = 409


class SelfRemoval(ClusterConfigError):
    status_code = 400


class NoQuorum(ClusterConfigError):
    status_code = 503


class UnknownNode(ClusterConfigError):
    status_code = 404


class AuthenticationFailed(ClusterConfigError):
    status_code = 401


class FingerprintMismatch(ClusterConfigError):
    status_code = 400


class WitnessUnavailable(ClusterConfigError):
    status_code = 503


class CommandError(ClusterConfigError):
    """An external command exited with a non-zero status."""

    status_code = 500


class TaskError(ClusterConfigError):
    status_code = 500


class UnknownTask(ClusterConfigError):
    status_code = 404


class PeerUnavailable(ClusterConfigError):
    status_code = 503


class RemoteRequestFailed(ClusterConfigError):
    """A cluster peer rejected a request; ``errors`` holds its details."""

    status_code = 502
