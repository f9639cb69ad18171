"""Snapshot tool - snapshot the disk mounted by a pod."""

from snapshotter.snapshot.snapshot import (
    SnapshotPlan,
    SnapshotTaker,
    generate_name,
    parse_config,
)

__all__ = ["SnapshotPlan", "SnapshotTaker", "generate_name", "parse_config"]
