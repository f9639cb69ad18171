"""Snapshot operator: GCE persistent disks from snapshots for Kubernetes jobs."""

__version__ = "0.1.0"
