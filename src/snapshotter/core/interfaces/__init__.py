"""Core interfaces for the snapshot operator."""

from snapshotter.core.interfaces.cluster import ClusterClient
from snapshotter.core.interfaces.disk import DiskClient

__all__ = [
    "ClusterClient",
    "DiskClient",
]
