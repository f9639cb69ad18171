"""Cloud disk and snapshot domain models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class DiskState(StrEnum):
    """Provisioning state of a persistent disk."""

    MISSING = "MISSING"
    NOT_READY = "NOT_READY"  # CREATING, RESTORING, ...
    READY = "READY"


# Provider statuses that will never turn READY
DISK_TERMINAL_STATUSES = frozenset({"FAILED", "DELETING"})


class DiskInfo(BaseModel):
    """Observed persistent disk."""

    name: str
    zone: str
    status: str  # raw provider status
    size_gb: int = 0
    source_snapshot: str | None = None

    model_config = {"frozen": True}

    @property
    def state(self) -> DiskState:
        return DiskState.READY if self.status == "READY" else DiskState.NOT_READY


class DiskSpec(BaseModel):
    """Parameters of a disk to create."""

    name: str
    size_gb: int
    disk_type: str  # short type name, e.g. pd-ssd
    description: str = ""
    source_snapshot: str | None = None  # snapshot self link, None for an empty disk

    model_config = {"frozen": True}


class SnapshotInfo(BaseModel):
    name: str
    size_gb: int
    self_link: str = ""
    created_at: datetime | None = None

    model_config = {"frozen": True}

    def matches(self, namespace: str) -> bool:
        return self.name.startswith(namespace)

    @property
    def source(self) -> str:
        """Reference accepted as a disk's source snapshot."""
        return self.self_link or f"global/snapshots/{self.name}"


class DiskLocation(BaseModel):
    """Where a mounted persistent disk lives; a snapshot is stored in its region."""

    name: str
    zone: str
    region: str

    model_config = {"frozen": True}
