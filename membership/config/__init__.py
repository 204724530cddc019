"""Shared configuration document, link descriptors and the config store."""

from .document import ClusterConfigDocument, NodeEntry, TotemConfig, create_conf
from .links import LinkSpec, extract_links, parse_link, print_link
from .store import ConfigStore, FileConfigStore, LockToken
from .verify import verify_config

__all__ = [
    "ClusterConfigDocument",
    "NodeEntry",
    "TotemConfig",
    "create_conf",
    "LinkSpec",
    "extract_links",
    "parse_link",
    "print_link",
    "ConfigStore",
    "FileConfigStore",
    "LockToken",
    "verify_config",
]
