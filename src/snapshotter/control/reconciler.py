"""Reconciler - job lifecycle events to disk + PVC/PV provisioning.

Per snapshot name:
    Idle --(job active, disk absent or not ready)--> Provisioning
    Provisioning --(PVC/PV bound, or any failure)--> Idle
    any --(job finished or deleted)--> Deleting

Create path (one task per snapshot name, guarded by the registry):
1. Look up the disk; create it when MISSING (from the snapshot, or empty)
2. Poll until READY (bounded by READINESS_TIMEOUT)
3. Create the PVC, then the PV
4. Clear the registry mark (always, in `finally`)

Delete path: delete the PVC; when the snapshot is still being provisioned,
defer the deletion until the mark clears.

Failures abandon the attempt. Nothing is retried here; the next job event
re-drives the same idempotent path and reuses any disk left behind.

Configuration via OperatorConfig (OPERATOR_ env prefix) and DiskConfig (DISK_ env prefix).
"""

import asyncio
import logging
import time
from collections.abc import Coroutine
from typing import Any

from snapshotter.app.config import get_settings
from snapshotter.app.logging import clear_trace_context, set_trace_id
from snapshotter.app.metrics.collector import (
    CLAIM_DELETES_TOTAL,
    DELETES_DEFERRED_TOTAL,
    DISK_CREATES_TOTAL,
    PROVISION_DURATION,
    PROVISION_TOTAL,
    WATCH_EVENTS_TOTAL,
    WORKLOADS_IGNORED_TOTAL,
)
from snapshotter.control.registry import ProcessingRegistry
from snapshotter.core.domain import (
    DISK_TERMINAL_STATUSES,
    ClaimSpec,
    DiskInfo,
    DiskSpec,
    DiskState,
    EventType,
    ProvisionRequest,
    VolumeSpec,
    Workload,
    WorkloadEvent,
)
from snapshotter.core.errors import (
    ClaimReferenceNotFoundError,
    DiskFailedError,
    DiskVanishedError,
    MissingAnnotationError,
    ReadinessTimeoutError,
    SnapshotNotFoundError,
    WatchStreamError,
)
from snapshotter.core.interfaces import ClusterClient, DiskClient
from snapshotter.core.logging_schema import Component, ErrorClass, LogEvent
from snapshotter.core.retryable import classify_error

logger = logging.getLogger(__name__)

_settings = get_settings()
_operator_config = _settings.operator
_disk_config = _settings.disk
_logging_config = _settings.logging


def uses_snapshot(snapshot_name: str, empty_disk_suffix: str) -> bool:
    """False when the snapshot name requests an empty disk."""
    return not snapshot_name.endswith(empty_disk_suffix)


def _request_extra(request: ProvisionRequest) -> dict[str, Any]:
    return {
        "component": Component.RECONCILER,
        "job": request.job_name,
        "namespace": request.namespace,
        "snapshot": request.snapshot_name,
        "zone": request.zone,
        "pvc_name": request.pvc_name,
        "pd_name": request.pd_name,
    }


class Reconciler:
    """Maps each job event to at most one create or delete action."""

    SOURCE_ANNOTATION: str = _operator_config.source_annotation
    ZONE_ANNOTATION: str = _operator_config.zone_annotation
    EMPTY_DISK_SUFFIX: str = _operator_config.empty_disk_suffix

    READINESS_POLL_INTERVAL: float = _operator_config.readiness_poll_interval
    READINESS_TIMEOUT: float | None = _operator_config.readiness_timeout
    DELETE_POLL_INTERVAL: float = _operator_config.delete_poll_interval
    DELETE_WAIT_TIMEOUT: float | None = _operator_config.delete_wait_timeout

    SIZE_MARGIN_GB: int = _disk_config.size_margin_gb
    EMPTY_DISK_SIZE_GB: int = _disk_config.empty_disk_size_gb
    DISK_TYPE: str = _disk_config.disk_type
    FS_TYPE: str = _disk_config.fs_type
    DESCRIPTION_PREFIX: str = _disk_config.description_prefix

    def __init__(
        self,
        disks: DiskClient,
        cluster: ClusterClient,
        registry: ProcessingRegistry | None = None,
    ) -> None:
        self._disks = disks
        self._cluster = cluster
        self._registry = registry if registry is not None else ProcessingRegistry()
        self._tasks: set[asyncio.Task] = set()

    @property
    def registry(self) -> ProcessingRegistry:
        return self._registry

    @property
    def in_flight(self) -> int:
        """Number of provisioning and deferred-deletion tasks still running."""
        return len(self._tasks)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def handle(self, event: WorkloadEvent) -> None:
        """Dispatch one watch event.

        Raises:
            WatchStreamError: on an ERROR event (the subscription must restart)
        """
        WATCH_EVENTS_TOTAL.labels(type=event.type.value).inc()

        if event.type == EventType.ERROR:
            raise WatchStreamError(event.message or "watch stream reported an error")

        workload = event.workload
        if workload is None:
            return

        if event.type == EventType.BOOKMARK:
            logger.debug(
                "Received bookmark",
                extra={"event": LogEvent.BOOKMARK_RECEIVED, "job": workload.name},
            )
            return

        # Event-scoped trace id, inherited by the tasks spawned below
        set_trace_id()
        try:
            if event.type == EventType.DELETED:
                logger.info(
                    "Job deleted",
                    extra={
                        "event": LogEvent.WORKLOAD_DELETED,
                        "job": workload.name,
                        "namespace": workload.namespace,
                    },
                )
                await self.delete(workload)
                return

            logger.info(
                "Job changed",
                extra={
                    "event": LogEvent.WORKLOAD_CHANGED,
                    "job": workload.name,
                    "namespace": workload.namespace,
                    "type": event.type.value,
                    "active": workload.active,
                    "succeeded": workload.succeeded,
                    "failed": workload.failed,
                },
            )
            if workload.is_finished:
                await self.delete(workload)
            else:
                await self.create(workload)
        finally:
            clear_trace_context()

    def _resolve(self, workload: Workload) -> ProvisionRequest | None:
        """Provisioning intent of the workload, None when the event must be dropped."""
        try:
            return ProvisionRequest.from_workload(
                workload, self.SOURCE_ANNOTATION, self.ZONE_ANNOTATION
            )
        except MissingAnnotationError as exc:
            WORKLOADS_IGNORED_TOTAL.labels(reason="missing_annotation").inc()
            logger.info(
                "Missing annotation on job, ignoring",
                extra={
                    "event": LogEvent.WORKLOAD_IGNORED,
                    "job": workload.name,
                    "namespace": workload.namespace,
                    "annotation": exc.annotation,
                },
            )
        except ClaimReferenceNotFoundError as exc:
            WORKLOADS_IGNORED_TOTAL.labels(reason="claim_not_found").inc()
            logger.info(
                "No volume claim references the snapshot, ignoring",
                extra={
                    "event": LogEvent.WORKLOAD_IGNORED,
                    "job": workload.name,
                    "namespace": workload.namespace,
                    "snapshot": exc.snapshot,
                },
            )
        return None

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight task, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Create path
    # =========================================================================

    async def create(self, workload: Workload) -> asyncio.Task | None:
        """Start provisioning unless the snapshot is already being provisioned.

        Returns:
            The provisioning task, or None if nothing was started
        """
        request = self._resolve(workload)
        if request is None:
            return None

        # Check-and-mark is atomic: a second immediate call is a no-op
        if not self._registry.try_mark(request.snapshot_name):
            logger.info(
                "Already processing",
                extra={"event": LogEvent.PROVISION_SKIPPED, **_request_extra(request)},
            )
            return None

        logger.info(
            "Creating disk and pvc/pv for job",
            extra={"event": LogEvent.PROVISION_STARTED, **_request_extra(request)},
        )
        return self._spawn(self._provision(request), name=f"provision:{request.snapshot_name}")

    async def _provision(self, request: ProvisionRequest) -> None:
        """One provisioning attempt. Never raises; always clears the registry mark."""
        start = time.monotonic()
        status = "error"
        try:
            await self._ensure_disk(request)
            disk = await self._wait_until_ready(request)
            await self._bind(request, disk.size_gb)
            status = "success"
        except ReadinessTimeoutError as exc:
            status = "timeout"
            logger.error(
                "Persistent disk not ready in time, abandoning",
                extra={
                    "event": LogEvent.OPERATION_TIMEOUT,
                    "error_class": ErrorClass.TIMEOUT,
                    "timeout_s": exc.timeout_s,
                    **_request_extra(request),
                },
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error_class = classify_error(exc)
            logger.exception(
                "Provisioning failed",
                extra={
                    "event": LogEvent.OPERATION_FAILED,
                    "error_class": error_class,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    **_request_extra(request),
                },
            )
        finally:
            self._registry.clear(request.snapshot_name)
            duration = time.monotonic() - start
            PROVISION_TOTAL.labels(status=status).inc()
            PROVISION_DURATION.observe(duration)

        if status != "success":
            return

        duration_ms = duration * 1000
        logger.info(
            "Provisioning complete",
            extra={
                "event": LogEvent.PROVISION_COMPLETE,
                "duration_ms": duration_ms,
                **_request_extra(request),
            },
        )
        if duration_ms > _logging_config.slow_threshold_ms:
            logger.warning(
                "Slow provisioning detected",
                extra={
                    "event": LogEvent.PROVISION_SLOW,
                    "duration_ms": duration_ms,
                    "threshold_ms": _logging_config.slow_threshold_ms,
                    **_request_extra(request),
                },
            )

    async def _ensure_disk(self, request: ProvisionRequest) -> None:
        """Create the disk if it does not exist yet. An existing disk is reused."""
        disk = await self._disks.get(request.zone, request.pd_name)
        if disk is not None:
            logger.info(
                "Persistent disk already exists, skipping creation",
                extra={
                    "event": LogEvent.PROVISION_SKIPPED,
                    "status": disk.status,
                    **_request_extra(request),
                },
            )
            return

        spec = await self.disk_spec(request)
        await self._disks.create(request.zone, spec)
        DISK_CREATES_TOTAL.labels(source="snapshot" if spec.source_snapshot else "empty").inc()

    async def disk_spec(self, request: ProvisionRequest) -> DiskSpec:
        """Disk to create: from the snapshot (its size + margin) or empty (fixed size).

        Raises:
            SnapshotNotFoundError: the source snapshot does not exist
        """
        description = self.DESCRIPTION_PREFIX + request.snapshot_name

        if not uses_snapshot(request.snapshot_name, self.EMPTY_DISK_SUFFIX):
            return DiskSpec(
                name=request.pd_name,
                size_gb=self.EMPTY_DISK_SIZE_GB,
                disk_type=self.DISK_TYPE,
                description=description,
            )

        snapshot = await self._disks.get_snapshot(request.snapshot_name)
        if snapshot is None:
            raise SnapshotNotFoundError(f"snapshot {request.snapshot_name} not found")

        return DiskSpec(
            name=request.pd_name,
            size_gb=snapshot.size_gb + self.SIZE_MARGIN_GB,
            disk_type=self.DISK_TYPE,
            description=description,
            source_snapshot=snapshot.source,
        )

    async def _wait_until_ready(self, request: ProvisionRequest) -> DiskInfo:
        """Poll the disk until READY, bounded by READINESS_TIMEOUT.

        Raises:
            ReadinessTimeoutError: not READY in time
            DiskVanishedError: the disk disappeared while polling
            DiskFailedError: the provider reports a status that never turns READY
        """
        logger.info(
            "Polling persistent disk until ready",
            extra={"event": LogEvent.DISK_POLLING, **_request_extra(request)},
        )
        deadline = asyncio.timeout(self.READINESS_TIMEOUT)
        try:
            async with deadline:
                return await self._poll_disk(request)
        except TimeoutError as exc:
            # A TimeoutError from the disk client itself is a query failure, not a deadline
            if not deadline.expired():
                raise
            raise ReadinessTimeoutError(request.pd_name, self.READINESS_TIMEOUT or 0) from exc

    async def _poll_disk(self, request: ProvisionRequest) -> DiskInfo:
        while True:
            disk = await self._disks.get(request.zone, request.pd_name)
            if disk is None:
                raise DiskVanishedError(request.pd_name)
            if disk.state == DiskState.READY:
                logger.info(
                    "Persistent disk ready, creating pvc/pv",
                    extra={
                        "event": LogEvent.DISK_READY,
                        "size_gb": disk.size_gb,
                        **_request_extra(request),
                    },
                )
                return disk
            if disk.status in DISK_TERMINAL_STATUSES:
                raise DiskFailedError(request.pd_name, disk.status)
            await asyncio.sleep(self.READINESS_POLL_INTERVAL)

    async def _bind(self, request: ProvisionRequest, size_gb: int) -> None:
        """Create the PVC, then the PV it is pre-bound to."""
        pv_name = request.pvc_name

        await self._cluster.create_claim(
            ClaimSpec(
                name=request.pvc_name,
                namespace=request.namespace,
                volume_name=pv_name,
                size_gb=size_gb,
            )
        )
        logger.info(
            "PVC created",
            extra={"event": LogEvent.CLAIM_CREATED, **_request_extra(request)},
        )

        await self._cluster.create_volume(
            VolumeSpec(
                name=pv_name,
                pd_name=request.pd_name,
                size_gb=size_gb,
                fs_type=self.FS_TYPE,
            )
        )
        logger.info(
            "PV created",
            extra={"event": LogEvent.VOLUME_CREATED, "pv_name": pv_name, **_request_extra(request)},
        )

    # =========================================================================
    # Delete path
    # =========================================================================

    async def delete(self, workload: Workload) -> asyncio.Task | None:
        """Delete the job's PVC, deferring while its snapshot is being provisioned.

        Returns:
            The deferred-deletion task, or None if the deletion ran inline
            (or nothing had to be done)
        """
        request = self._resolve(workload)
        if request is None:
            return None

        if self._registry.is_marked(request.snapshot_name):
            DELETES_DEFERRED_TOTAL.inc()
            logger.info(
                "Provisioning in flight, deferring pvc deletion",
                extra={"event": LogEvent.DELETE_DEFERRED, **_request_extra(request)},
            )
            return self._spawn(
                self._deferred_delete(request), name=f"delete:{request.snapshot_name}"
            )

        await self._delete_claim(request)
        return None

    async def _deferred_delete(self, request: ProvisionRequest) -> None:
        """Delete the PVC once the registry mark clears (re-checked every tick)."""

        async def wait_cleared() -> None:
            while self._registry.is_marked(request.snapshot_name):
                await asyncio.sleep(self.DELETE_POLL_INTERVAL)

        try:
            await asyncio.wait_for(wait_cleared(), timeout=self.DELETE_WAIT_TIMEOUT)
        except asyncio.TimeoutError:
            CLAIM_DELETES_TOTAL.labels(outcome="abandoned").inc()
            logger.error(
                "Provisioning still in flight, abandoning pvc deletion",
                extra={
                    "event": LogEvent.OPERATION_TIMEOUT,
                    "error_class": ErrorClass.TIMEOUT,
                    "timeout_s": self.DELETE_WAIT_TIMEOUT,
                    **_request_extra(request),
                },
            )
            return

        await self._delete_claim(request)

    async def _delete_claim(self, request: ProvisionRequest) -> None:
        """Delete the PVC. Already absent counts as success. Never raises."""
        logger.info(
            "Deleting pvc",
            extra={"event": LogEvent.OPERATION_STARTED, **_request_extra(request)},
        )
        try:
            deleted = await self._cluster.delete_claim(request.namespace, request.pvc_name)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            CLAIM_DELETES_TOTAL.labels(outcome="error").inc()
            logger.error(
                "Couldn't delete pvc",
                extra={
                    "event": LogEvent.OPERATION_FAILED,
                    "error_class": classify_error(exc),
                    "error": str(exc),
                    **_request_extra(request),
                },
            )
            return

        if deleted:
            CLAIM_DELETES_TOTAL.labels(outcome="deleted").inc()
            logger.info(
                "PVC deleted",
                extra={"event": LogEvent.CLAIM_DELETED, **_request_extra(request)},
            )
        else:
            CLAIM_DELETES_TOTAL.labels(outcome="absent").inc()
            logger.info(
                "PVC was already deleted, assuming successful completion",
                extra={"event": LogEvent.CLAIM_ALREADY_ABSENT, **_request_extra(request)},
            )
