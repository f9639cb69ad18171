"""Google Compute Engine persistent disk client.

google-cloud-compute clients are synchronous; every call is pushed to a
worker thread so that polling one disk never blocks the event loop.

Configuration via GcpConfig (GCP_ env prefix) and DiskConfig (DISK_ env prefix).
"""

import asyncio
import logging
from datetime import datetime

from google.api_core.exceptions import BadRequest, NotFound
from google.cloud import compute_v1

from snapshotter.core.domain import DiskInfo, DiskSpec, SnapshotInfo
from snapshotter.core.interfaces import DiskClient
from snapshotter.core.logging_schema import Component, LogEvent
from snapshotter.core.retryable import DiskInUseError

logger = logging.getLogger(__name__)

_IN_USE_REASON = "resourceInUseByAnotherResource"


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _to_snapshot_info(snapshot: compute_v1.Snapshot) -> SnapshotInfo:
    return SnapshotInfo(
        name=snapshot.name,
        size_gb=snapshot.disk_size_gb,
        self_link=snapshot.self_link,
        created_at=_parse_timestamp(snapshot.creation_timestamp),
    )


class GCEDiskClient(DiskClient):
    """Persistent disks and snapshots of one GCP project."""

    def __init__(
        self,
        project: str,
        disks: compute_v1.DisksClient | None = None,
        snapshots: compute_v1.SnapshotsClient | None = None,
        operation_timeout: float = 600.0,
    ) -> None:
        self._project = project
        self._disks = disks or compute_v1.DisksClient()
        self._snapshots = snapshots or compute_v1.SnapshotsClient()
        self._operation_timeout = operation_timeout

    @property
    def project(self) -> str:
        return self._project

    def disk_type_url(self, zone: str, disk_type: str) -> str:
        return f"projects/{self._project}/zones/{zone}/diskTypes/{disk_type}"

    async def get(self, zone: str, name: str) -> DiskInfo | None:
        try:
            disk = await asyncio.to_thread(
                self._disks.get, project=self._project, zone=zone, disk=name
            )
        except NotFound:
            return None
        return DiskInfo(
            name=disk.name,
            zone=zone,
            status=disk.status,
            size_gb=disk.size_gb,
            source_snapshot=disk.source_snapshot or None,
        )

    async def create(self, zone: str, spec: DiskSpec, wait: bool = False) -> None:
        """Insert a disk; with wait=True block until the operation completes."""
        disk = compute_v1.Disk(
            name=spec.name,
            description=spec.description,
            size_gb=spec.size_gb,
            type_=self.disk_type_url(zone, spec.disk_type),
        )
        if spec.source_snapshot:
            disk.source_snapshot = spec.source_snapshot

        logger.info(
            "Inserting persistent disk",
            extra={
                "event": LogEvent.DISK_CREATE_REQUESTED,
                "component": Component.DISK,
                "pd_name": spec.name,
                "zone": zone,
                "size_gb": spec.size_gb,
                "source_snapshot": spec.source_snapshot,
            },
        )
        operation = await asyncio.to_thread(
            self._disks.insert, project=self._project, zone=zone, disk_resource=disk
        )
        if wait:
            await asyncio.to_thread(operation.result, timeout=self._operation_timeout)

    async def delete(self, zone: str, name: str) -> bool:
        """Delete a disk and wait for the operation to complete."""
        try:
            operation = await asyncio.to_thread(
                self._disks.delete, project=self._project, zone=zone, disk=name
            )
            await asyncio.to_thread(operation.result, timeout=self._operation_timeout)
        except NotFound:
            return False
        except BadRequest as exc:
            if _IN_USE_REASON in str(exc):
                raise DiskInUseError(name, str(exc)) from exc
            raise
        return True

    async def get_snapshot(self, name: str) -> SnapshotInfo | None:
        try:
            snapshot = await asyncio.to_thread(
                self._snapshots.get, project=self._project, snapshot=name
            )
        except NotFound:
            return None
        return _to_snapshot_info(snapshot)

    async def list_snapshots(self, prefix: str = "") -> list[SnapshotInfo]:
        def _list() -> list[compute_v1.Snapshot]:
            # Pager fetches further pages lazily, keep the iteration in the thread
            return list(self._snapshots.list(project=self._project))

        snapshots = await asyncio.to_thread(_list)
        return [
            _to_snapshot_info(snapshot)
            for snapshot in snapshots
            if snapshot.name.startswith(prefix)
        ]

    async def create_snapshot(
        self,
        zone: str,
        disk: str,
        name: str,
        region: str,
        archive: bool = False,
        wait: bool = False,
    ) -> None:
        snapshot = compute_v1.Snapshot(
            name=name,
            storage_locations=[region],
            snapshot_type="ARCHIVE" if archive else "STANDARD",
        )
        logger.info(
            "Requesting snapshot",
            extra={
                "event": LogEvent.SNAPSHOT_REQUESTED,
                "component": Component.DISK,
                "pd_name": disk,
                "zone": zone,
                "snapshot": name,
                "storage_location": region,
                "snapshot_type": snapshot.snapshot_type,
            },
        )
        operation = await asyncio.to_thread(
            self._disks.create_snapshot,
            project=self._project,
            zone=zone,
            disk=disk,
            snapshot_resource=snapshot,
        )
        if wait:
            await asyncio.to_thread(operation.result, timeout=self._operation_timeout)
