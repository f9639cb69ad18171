"""Domain models."""

from snapshotter.core.domain.disk import (
    DISK_TERMINAL_STATUSES,
    DiskInfo,
    DiskLocation,
    DiskSpec,
    DiskState,
    SnapshotInfo,
)
from snapshotter.core.domain.volume import (
    ClaimSpec,
    PersistentVolumeInfo,
    VolumeSpec,
    find_volume,
)
from snapshotter.core.domain.workload import (
    EventType,
    ProvisionRequest,
    Workload,
    WorkloadEvent,
    claim_name_for_snapshot,
)

__all__ = [
    "DISK_TERMINAL_STATUSES",
    "DiskInfo",
    "DiskLocation",
    "DiskSpec",
    "DiskState",
    "SnapshotInfo",
    "ClaimSpec",
    "PersistentVolumeInfo",
    "VolumeSpec",
    "find_volume",
    "EventType",
    "ProvisionRequest",
    "Workload",
    "WorkloadEvent",
    "claim_name_for_snapshot",
]
