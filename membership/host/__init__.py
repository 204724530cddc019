from .commands import GroupCommunication, ServiceManager, generate_authkey, run_command
from .network import HostResolver
from .trust import TrustStore, cert_fingerprint, normalize_fingerprint

__all__ = [
    "GroupCommunication",
    "ServiceManager",
    "generate_authkey",
    "run_command",
    "HostResolver",
    "TrustStore",
    "cert_fingerprint",
    "normalize_fingerprint",
]
