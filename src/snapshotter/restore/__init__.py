"""Restore tool - replace a pod's disk with one created from a snapshot."""

from snapshotter.restore.restore import (
    SnapshotRestorer,
    find_snapshot,
    stateful_set_from_pod,
)

__all__ = ["SnapshotRestorer", "find_snapshot", "stateful_set_from_pod"]
