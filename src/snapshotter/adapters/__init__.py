"""Adapters module - infrastructure implementations."""

from snapshotter.adapters.cluster import KubernetesClusterClient
from snapshotter.adapters.disk import GCEDiskClient

__all__ = [
    "GCEDiskClient",
    "KubernetesClusterClient",
]
