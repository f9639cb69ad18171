"""Cloud disk client interface for persistent disk and snapshot operations."""

from abc import ABC, abstractmethod

from snapshotter.core.domain import DiskInfo, DiskSpec, SnapshotInfo


class DiskClient(ABC):
    """Interface for block-storage operations.

    Implementations:
    - GCEDiskClient: Google Compute Engine persistent disks

    Not-found is a state, not an error: get() returns None and delete()
    returns False. All other provider errors propagate; retry policy
    belongs to the caller.
    """

    @abstractmethod
    async def get(self, zone: str, name: str) -> DiskInfo | None:
        """Get a disk.

        Returns:
            DiskInfo, or None if the disk does not exist (MISSING)
        """
        ...

    @abstractmethod
    async def create(self, zone: str, spec: DiskSpec, wait: bool = False) -> None:
        """Request disk creation.

        By default returns once the provider accepted the request. The disk
        is not ready yet; poll get() until its state is READY. With
        wait=True, returns when the creation operation completed.
        """
        ...

    @abstractmethod
    async def delete(self, zone: str, name: str) -> bool:
        """Delete a disk.

        Returns:
            True if deleted, False if it did not exist
        """
        ...

    @abstractmethod
    async def get_snapshot(self, name: str) -> SnapshotInfo | None:
        """Get a snapshot, None if it does not exist."""
        ...

    @abstractmethod
    async def list_snapshots(self, prefix: str = "") -> list[SnapshotInfo]:
        """List snapshots whose name starts with prefix."""
        ...

    @abstractmethod
    async def create_snapshot(
        self,
        zone: str,
        disk: str,
        name: str,
        region: str,
        archive: bool = False,
        wait: bool = False,
    ) -> None:
        """Snapshot a disk, storing the snapshot in region.

        archive selects ARCHIVE instead of STANDARD snapshot storage. By
        default returns once the provider accepted the request; with
        wait=True, returns when the snapshot operation completed.
        """
        ...
