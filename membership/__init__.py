"""Cluster membership coordination: node add/remove/join under cluster locks."""

from .coordinator import ClusterCoordinator
from .settings import Settings

__all__ = ["ClusterCoordinator", "Settings"]
