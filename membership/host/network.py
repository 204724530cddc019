import ipaddress
import socket

from ..config.store import ConfigStore
from ..exceptions import UnknownNode


class HostResolver:
    """Resolve node names to the addresses the cluster would use."""

    def __init__(self, store: ConfigStore | None = None) -> None:
        self.store = store

    def resolve(self, host: str) -> str | None:
        """Return the IP ``host`` resolves to, preferring IPv4."""
        try:
            ipaddress.ip_address(host)
            return host
        except ValueError:
            pass
        try:
            infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_UDP)
        except socket.gaierror:
            return None
        addrs = [info[4][0] for info in infos]
        for addr in addrs:
            if ipaddress.ip_address(addr).version == 4:
                return addr
        return addrs[0] if addrs else None

    def node_ip(self, name: str) -> str:
        """Address of cluster node ``name`` from the membership view or DNS."""
        if self.store is not None:
            ip = self.store.member_address(name)
            if ip:
                return ip
        ip = self.resolve(name)
        if ip is None:
            raise UnknownNode(f"unable to get IP for node '{name}' - node offline?")
        return ip
