"""Cloud disk client implementations."""

from snapshotter.adapters.disk.gce import GCEDiskClient

__all__ = ["GCEDiskClient"]
