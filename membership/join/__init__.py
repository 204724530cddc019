from .bootstrap import ClusterBootstrap
from .join import ClusterJoiner
from .remote import RemoteClusterClient

__all__ = ["ClusterBootstrap", "ClusterJoiner", "RemoteClusterClient"]
