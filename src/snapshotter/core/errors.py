"""Error handling module for snapshotter.

This module defines error codes and exception classes.

Input errors (missing annotation, unmatched claim reference) drop the event.
Provisioning errors abandon the current attempt; the next workload event
re-drives the same idempotent path.

Usage:
    from snapshotter.core.errors import MissingAnnotationError

    raise MissingAnnotationError("dfuse.io/snapshot-source", "my-job")
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes."""

    MISSING_ANNOTATION = "MISSING_ANNOTATION"
    CLAIM_REFERENCE_NOT_FOUND = "CLAIM_REFERENCE_NOT_FOUND"
    SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"
    DISK_VANISHED = "DISK_VANISHED"
    DISK_FAILED = "DISK_FAILED"
    READINESS_TIMEOUT = "READINESS_TIMEOUT"
    WATCH_STREAM_FAILED = "WATCH_STREAM_FAILED"
    VOLUME_NOT_FOUND = "VOLUME_NOT_FOUND"
    SETUP_FAILED = "SETUP_FAILED"
    RESTORE_FAILED = "RESTORE_FAILED"
    SNAPSHOT_FAILED = "SNAPSHOT_FAILED"
    MISSING_CONFIG = "MISSING_CONFIG"


class SnapshotterError(Exception):
    """Base exception for snapshotter.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class MissingAnnotationError(SnapshotterError):
    """A required annotation is absent (or empty) on the workload."""

    def __init__(self, annotation: str, job: str) -> None:
        self.annotation = annotation
        self.job = job
        super().__init__(
            ErrorCode.MISSING_ANNOTATION,
            f"missing `{annotation}` annotation on job {job}",
        )


class ClaimReferenceNotFoundError(SnapshotterError):
    """No volume claim reference on the workload contains the snapshot name."""

    def __init__(self, snapshot: str, job: str) -> None:
        self.snapshot = snapshot
        self.job = job
        super().__init__(
            ErrorCode.CLAIM_REFERENCE_NOT_FOUND,
            f"job {job} has no volume claim referencing snapshot {snapshot}",
        )


class SnapshotNotFoundError(SnapshotterError):
    def __init__(self, message: str = "Snapshot not found") -> None:
        super().__init__(ErrorCode.SNAPSHOT_NOT_FOUND, message)


class DiskVanishedError(SnapshotterError):
    """The disk disappeared while waiting for it to become ready."""

    def __init__(self, pd_name: str) -> None:
        self.pd_name = pd_name
        super().__init__(
            ErrorCode.DISK_VANISHED,
            f"expected persistent disk {pd_name} to exist while polling it",
        )


class DiskFailedError(SnapshotterError):
    """The cloud provider reported the disk creation as failed."""

    def __init__(self, pd_name: str, status: str) -> None:
        self.pd_name = pd_name
        self.status = status
        super().__init__(ErrorCode.DISK_FAILED, f"persistent disk {pd_name} is {status}")


class ReadinessTimeoutError(SnapshotterError):
    """The disk did not become ready within the configured timeout."""

    def __init__(self, pd_name: str, timeout_s: float) -> None:
        self.pd_name = pd_name
        self.timeout_s = timeout_s
        super().__init__(
            ErrorCode.READINESS_TIMEOUT,
            f"persistent disk {pd_name} not ready after {timeout_s:.0f}s",
        )


class WatchStreamError(SnapshotterError):
    """The workload watch stream reported an error; the subscription must restart."""

    def __init__(self, message: str = "Watch stream failed") -> None:
        super().__init__(ErrorCode.WATCH_STREAM_FAILED, message)


class VolumeNotFoundError(SnapshotterError):
    def __init__(self, message: str = "Persistent volume not found") -> None:
        super().__init__(ErrorCode.VOLUME_NOT_FOUND, message)


class SetupError(SnapshotterError):
    """A required backend cannot be reached at startup."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.SETUP_FAILED, message)


class RestoreError(SnapshotterError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.RESTORE_FAILED, message)


class SnapshotTakeError(SnapshotterError):
    """Taking a snapshot of a pod's disk failed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.SNAPSHOT_FAILED, message)


class MissingConfigError(SnapshotterError):
    """A required snapshot setting has no value."""

    def __init__(self, param: str, example: str) -> None:
        self.param = param
        super().__init__(
            ErrorCode.MISSING_CONFIG,
            f"snapshot config missing value for {param}. Example: {example}",
        )
