"""Restore a StatefulSet pod's disk from a snapshot.

Flow:
1. Save the StatefulSet definition to a temporary file
2. Select the snapshot (by name, or `latest` for the namespace)
3. Locate the pod's PV to learn the disk name and zone
4. Delete the StatefulSet (orphaning pods), then the pod
5. Delete the old disk (retried while it is still attached)
6. Create the disk again from the snapshot, same name and zone
7. Recreate the StatefulSet from the saved definition

Configuration via RestoreConfig (RESTORE_ env prefix) and DiskConfig (DISK_ env prefix).
"""

import asyncio
import json
import logging
import os
import tempfile
from typing import Any

from snapshotter.app.config import get_settings
from snapshotter.core.domain import DiskSpec, SnapshotInfo, find_volume
from snapshotter.core.errors import RestoreError, SnapshotNotFoundError, VolumeNotFoundError
from snapshotter.core.interfaces import ClusterClient, DiskClient
from snapshotter.core.logging_schema import Component, LogEvent
from snapshotter.core.retryable import with_retry

logger = logging.getLogger(__name__)

_settings = get_settings()
_restore_config = _settings.restore
_disk_config = _settings.disk

LATEST = "latest"


def stateful_set_from_pod(pod_name: str) -> str:
    """StatefulSet name of a pod: `mindreader-v3-1` -> `mindreader-v3`."""
    base, sep, _ordinal = pod_name.rpartition("-")
    if not sep or not base:
        raise RestoreError(f"pod name {pod_name} is not a StatefulSet pod (<name>-<ordinal>)")
    return base


def find_snapshot(snapshots: list[SnapshotInfo], name: str, namespace: str) -> SnapshotInfo:
    """Snapshot called name, or the newest one of the namespace when name is `latest`.

    Raises:
        SnapshotNotFoundError: nothing matches
    """
    if name != LATEST:
        for snapshot in snapshots:
            if snapshot.name == name:
                return snapshot
        raise SnapshotNotFoundError(f"snapshot {name} not found")

    candidates = [s for s in snapshots if s.matches(namespace)]
    if not candidates:
        raise SnapshotNotFoundError(f"no snapshot found for namespace {namespace}")
    # Snapshots without a creation time sort first, and so never win over dated ones
    return max(candidates, key=lambda s: (s.created_at is not None, s.created_at or 0, s.name))


def save_definition(definition: dict[str, Any], name: str) -> str:
    """Write definition to a temporary JSON file and return its path."""
    fd, path = tempfile.mkstemp(prefix=f"{name}-", suffix=".json")
    with os.fdopen(fd, "w") as f:
        json.dump(definition, f, indent=2)
    return path


def load_definition(path: str) -> dict[str, Any]:
    with open(path) as f:
        return json.load(f)


class SnapshotRestorer:
    """Replaces a StatefulSet pod's disk with one created from a snapshot."""

    DISK_DELETE_RETRIES: int = _restore_config.disk_delete_retries
    DISK_DELETE_RETRY_INTERVAL: float = _restore_config.disk_delete_retry_interval
    POD_DELETE_GRACE: float = _restore_config.pod_delete_grace
    DISK_TYPE: str = _disk_config.disk_type
    DESCRIPTION_PREFIX: str = _disk_config.description_prefix

    def __init__(self, disks: DiskClient, cluster: ClusterClient) -> None:
        self._disks = disks
        self._cluster = cluster

    async def restore(self, namespace: str, pod_name: str, snapshot_name: str) -> SnapshotInfo:
        """Run the whole restore flow.

        Returns:
            The snapshot that was restored

        Raises:
            RestoreError: a step failed (the message names the step)
            SnapshotNotFoundError: no snapshot matches snapshot_name
            VolumeNotFoundError: the pod has no persistent volume
        """
        sts_name = stateful_set_from_pod(pod_name)

        try:
            definition = await self._cluster.get_stateful_set(namespace, sts_name)
        except Exception as e:
            raise RestoreError(f"could not get statefulset definition: {e}") from e
        definition_file = save_definition(definition, sts_name)
        logger.info(
            "Statefulset definition file created",
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.RESTORE,
                   "file": definition_file},
        )

        # Until the StatefulSet is deleted the cluster is untouched and the copy is not needed
        try:
            snapshot = await self._select_snapshot(namespace, snapshot_name)
            zone, disk_name = await self._locate_disk(namespace, pod_name)
        except BaseException:
            os.remove(definition_file)
            raise

        try:
            await self._take_down(namespace, sts_name, pod_name)
            await self._replace_disk(zone, disk_name, snapshot)
        except RestoreError as e:
            raise RestoreError(f"{e.message} (definition kept in {definition_file})") from e

        logger.info(
            "Recreating statefulset from definition",
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.RESTORE,
                   "statefulset": sts_name, "namespace": namespace},
        )
        try:
            await self._cluster.create_stateful_set(namespace, load_definition(definition_file))
        except Exception as e:
            raise RestoreError(
                f"could not create statefulset (definition kept in {definition_file}): {e}"
            ) from e

        os.remove(definition_file)
        logger.info(
            "Restore complete",
            extra={"event": LogEvent.OPERATION_SUCCESS, "component": Component.RESTORE,
                   "pod": pod_name, "namespace": namespace, "snapshot": snapshot.name},
        )
        return snapshot

    async def _select_snapshot(self, namespace: str, snapshot_name: str) -> SnapshotInfo:
        # `latest` only considers the namespace's own snapshots
        prefix = namespace if snapshot_name == LATEST else snapshot_name
        snapshots = await self._disks.list_snapshots(prefix)
        snapshot = find_snapshot(snapshots, snapshot_name, namespace)
        logger.info(
            "Selected a snapshot that will be restored",
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.RESTORE,
                   "snapshot": snapshot.name},
        )
        return snapshot

    async def _take_down(self, namespace: str, sts_name: str, pod_name: str) -> None:
        """Delete the StatefulSet (orphaning its pods), then the pod itself."""
        logger.info(
            "Deleting statefulset",
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.RESTORE,
                   "statefulset": sts_name, "namespace": namespace},
        )
        try:
            await self._cluster.delete_stateful_set(namespace, sts_name)
        except Exception as e:
            raise RestoreError(f"could not delete statefulset: {e}") from e

        logger.info(
            "Deleting pod",
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.RESTORE,
                   "pod": pod_name, "namespace": namespace},
        )
        try:
            await self._cluster.delete_pod(namespace, pod_name)
        except Exception as e:
            raise RestoreError(f"could not delete pod: {e}") from e
        # Give the node time to detach the disk
        await asyncio.sleep(self.POD_DELETE_GRACE)

    async def _locate_disk(self, namespace: str, pod_name: str) -> tuple[str, str]:
        volumes = await self._cluster.list_volumes()
        volume = find_volume(volumes, namespace, pod_name)
        if volume is None:
            raise VolumeNotFoundError(f"no persistent volume found for pod {pod_name} in {namespace}")

        zone = volume.zone
        if not zone:
            raise RestoreError(f"could not determine zone of persistent volume {volume.name}")
        disk_name = volume.disk_name
        if not disk_name:
            raise RestoreError(f"persistent volume {volume.name} is not backed by a GCE disk")
        return zone, disk_name

    async def _replace_disk(self, zone: str, disk_name: str, snapshot: SnapshotInfo) -> None:
        logger.info(
            "Deleting old disk",
            extra={"event": LogEvent.OPERATION_STARTED, "component": Component.RESTORE,
                   "pd_name": disk_name, "zone": zone},
        )
        try:
            await with_retry(
                lambda: self._disks.delete(zone, disk_name),
                max_retries=self.DISK_DELETE_RETRIES,
                base_delay=self.DISK_DELETE_RETRY_INTERVAL,
                max_delay=self.DISK_DELETE_RETRY_INTERVAL,
            )
        except Exception as e:
            raise RestoreError(f"could not delete disk {disk_name} in zone {zone}: {e}") from e

        logger.info(
            "Creating new disk from snapshot",
            extra={"event": LogEvent.DISK_CREATE_REQUESTED, "component": Component.RESTORE,
                   "pd_name": disk_name, "size_gb": snapshot.size_gb, "snapshot": snapshot.name},
        )
        spec = DiskSpec(
            name=disk_name,
            size_gb=snapshot.size_gb,
            disk_type=self.DISK_TYPE,
            description=self.DESCRIPTION_PREFIX + snapshot.name,
            source_snapshot=snapshot.source,
        )
        try:
            await self._disks.create(zone, spec, wait=True)
        except Exception as e:
            raise RestoreError(
                f"could not create disk {disk_name} in zone {zone} from snapshot {snapshot.name}: {e}"
            ) from e
