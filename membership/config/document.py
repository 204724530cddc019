"""Typed view of the shared cluster configuration document."""

import copy
import hashlib
import json
import re
from dataclasses import dataclass, field

from .links import LinkSpec

_LINK_KEY = re.compile(r"^ring(\d+)_addr$")


def link_key(num: int) -> str:
    return f"ring{num}_addr"


@dataclass
class NodeEntry:
    name: str
    nodeid: int
    quorum_votes: int = 1
    links: dict[int, str] = field(default_factory=dict)
    extra: dict = field(default_factory=dict)

    def address(self, num: int) -> str | None:
        return self.links.get(num)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update(
            {"name": self.name, "nodeid": self.nodeid, "quorum_votes": self.quorum_votes}
        )
        for num in sorted(self.links):
            data[link_key(num)] = self.links[num]
        return data

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "NodeEntry":
        links = {}
        extra = {}
        for key, value in data.items():
            m = _LINK_KEY.match(key)
            if m:
                if value is not None:
                    links[int(m.group(1))] = str(value)
            elif key not in ("name", "nodeid", "quorum_votes"):
                extra[key] = value
        return cls(
            name=data.get("name", name),
            nodeid=int(data["nodeid"]),
            quorum_votes=int(data.get("quorum_votes", 1)),
            links=links,
            extra=extra,
        )


@dataclass
class TotemConfig:
    cluster_name: str
    config_version: int = 0
    version: int = 2
    secauth: str | None = "on"
    ip_version: str = "ipv4-6"
    link_mode: str = "passive"
    interface: dict[int, dict] = field(default_factory=dict)
    options: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = dict(self.options)
        data.update(
            {
                "cluster_name": self.cluster_name,
                "config_version": self.config_version,
                "version": self.version,
                "ip_version": self.ip_version,
                "link_mode": self.link_mode,
                "interface": {str(k): dict(v) for k, v in sorted(self.interface.items())},
            }
        )
        if self.secauth is not None:
            data["secauth"] = self.secauth
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TotemConfig":
        known = {
            "cluster_name",
            "config_version",
            "version",
            "secauth",
            "ip_version",
            "link_mode",
            "interface",
        }
        interfaces = {
            int(k): dict(v) for k, v in (data.get("interface") or {}).items()
        }
        return cls(
            cluster_name=data.get("cluster_name", ""),
            config_version=int(data.get("config_version", 0)),
            version=int(data.get("version", 2)),
            secauth=data.get("secauth"),
            ip_version=data.get("ip_version", "ipv4-6"),
            link_mode=data.get("link_mode", "passive"),
            interface=interfaces,
            options={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class ClusterConfigDocument:
    totem: TotemConfig
    nodelist: dict[str, NodeEntry] = field(default_factory=dict)
    quorum: dict = field(default_factory=lambda: {"provider": "corosync_votequorum"})
    logging: dict = field(default_factory=lambda: {"to_syslog": "yes", "debug": "off"})
    digest: str | None = None

    def copy(self) -> "ClusterConfigDocument":
        return copy.deepcopy(self)

    def body(self) -> dict:
        return {
            "totem": self.totem.to_dict(),
            "nodelist": {
                name: entry.to_dict() for name, entry in sorted(self.nodelist.items())
            },
            "quorum": dict(self.quorum),
            "logging": dict(self.logging),
        }

    def serialize(self) -> str:
        """Canonical JSON text of the document (without the digest)."""
        return json.dumps(self.body(), sort_keys=True, indent=2)

    def compute_digest(self) -> str:
        return compute_digest(self.serialize())

    def to_dict(self) -> dict:
        data = self.body()
        data["digest"] = self.digest or self.compute_digest()
        return data

    @classmethod
    def from_dict(cls, data: dict, digest: str | None = None) -> "ClusterConfigDocument":
        nodes = {
            name: NodeEntry.from_dict(name, entry)
            for name, entry in (data.get("nodelist") or {}).items()
        }
        doc = cls(
            totem=TotemConfig.from_dict(data.get("totem") or {}),
            nodelist=nodes,
            quorum=dict(data.get("quorum") or {}),
            logging=dict(data.get("logging") or {}),
        )
        doc.digest = digest or data.get("digest") or doc.compute_digest()
        return doc

    @classmethod
    def parse(cls, text: str) -> "ClusterConfigDocument":
        data = json.loads(text)
        return cls.from_dict(data, digest=compute_digest(text))


def compute_digest(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def create_conf(
    nodename: str,
    cluster_name: str,
    local_address: str,
    *,
    nodeid: int | None = None,
    votes: int | None = None,
    links: dict[int, LinkSpec] | None = None,
) -> ClusterConfigDocument:
    """Initial document of a new cluster containing only ``nodename``."""
    links = dict(links or {})
    if not links:
        links[0] = LinkSpec(address=local_address)
    totem = TotemConfig(cluster_name=cluster_name)
    node = NodeEntry(name=nodename, nodeid=nodeid or 1, quorum_votes=votes or 1)
    for num, link in sorted(links.items()):
        iface = {"linknumber": num}
        if link.priority:
            iface["knet_link_priority"] = link.priority
        totem.interface[num] = iface
        node.links[num] = link.address
    return ClusterConfigDocument(totem=totem, nodelist={nodename: node})
