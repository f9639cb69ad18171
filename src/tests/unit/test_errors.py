"""Tests for error handling classes."""

import pytest

from snapshotter.core.errors import (
    ClaimReferenceNotFoundError,
    DiskFailedError,
    DiskVanishedError,
    ErrorCode,
    MissingAnnotationError,
    MissingConfigError,
    ReadinessTimeoutError,
    RestoreError,
    SetupError,
    SnapshotNotFoundError,
    SnapshotTakeError,
    SnapshotterError,
    VolumeNotFoundError,
    WatchStreamError,
)


class TestMissingAnnotationError:
    def test_inherits_snapshotter_error(self) -> None:
        exc = MissingAnnotationError("dfuse.io/snapshot-source", "my-job")
        assert isinstance(exc, SnapshotterError)
        assert isinstance(exc, Exception)

    def test_has_correct_error_code(self) -> None:
        exc = MissingAnnotationError("dfuse.io/snapshot-source", "my-job")
        assert exc.code == ErrorCode.MISSING_ANNOTATION

    def test_message_names_annotation_and_job(self) -> None:
        exc = MissingAnnotationError("dfuse.io/snapshot-to-zone", "my-job")
        assert exc.message == "missing `dfuse.io/snapshot-to-zone` annotation on job my-job"
        assert exc.annotation == "dfuse.io/snapshot-to-zone"
        assert exc.job == "my-job"


class TestProvisioningErrors:
    def test_claim_reference_not_found(self) -> None:
        exc = ClaimReferenceNotFoundError("snap-1", "job-1")
        assert exc.code == ErrorCode.CLAIM_REFERENCE_NOT_FOUND
        assert exc.snapshot == "snap-1"
        assert "snap-1" in exc.message

    def test_disk_vanished(self) -> None:
        exc = DiskVanishedError("data-snap-1")
        assert exc.code == ErrorCode.DISK_VANISHED
        assert exc.pd_name == "data-snap-1"

    def test_disk_failed_carries_status(self) -> None:
        exc = DiskFailedError("data-snap-1", "FAILED")
        assert exc.code == ErrorCode.DISK_FAILED
        assert exc.status == "FAILED"
        assert exc.message == "persistent disk data-snap-1 is FAILED"

    def test_readiness_timeout(self) -> None:
        exc = ReadinessTimeoutError("data-snap-1", 1800)
        assert exc.code == ErrorCode.READINESS_TIMEOUT
        assert exc.message == "persistent disk data-snap-1 not ready after 1800s"


class TestDefaultMessages:
    @pytest.mark.parametrize(
        ("exc", "code", "message"),
        [
            (SnapshotNotFoundError(), ErrorCode.SNAPSHOT_NOT_FOUND, "Snapshot not found"),
            (WatchStreamError(), ErrorCode.WATCH_STREAM_FAILED, "Watch stream failed"),
            (VolumeNotFoundError(), ErrorCode.VOLUME_NOT_FOUND, "Persistent volume not found"),
        ],
    )
    def test_default_message(self, exc: SnapshotterError, code: ErrorCode, message: str) -> None:
        assert exc.code == code
        assert exc.message == message
        assert str(exc) == message

    def test_custom_message(self) -> None:
        exc = SnapshotNotFoundError("snapshot eth-0001 not found")
        assert exc.message == "snapshot eth-0001 not found"

    def test_setup_and_restore_require_message(self) -> None:
        assert SetupError("no project").code == ErrorCode.SETUP_FAILED
        assert RestoreError("could not delete pod").code == ErrorCode.RESTORE_FAILED


class TestErrorCodeEnum:
    def test_values_match_names(self) -> None:
        for code in ErrorCode:
            assert code.value == code.name

    def test_is_str(self) -> None:
        assert ErrorCode.DISK_FAILED == "DISK_FAILED"


class TestSnapshotToolErrors:
    def test_snapshot_take_error(self) -> None:
        exc = SnapshotTakeError("pod node-0 not found in namespace ns")
        assert exc.code == ErrorCode.SNAPSHOT_FAILED
        assert str(exc) == "pod node-0 not found in namespace ns"

    def test_missing_config_quotes_example(self) -> None:
        exc = MissingConfigError("tag", "tag=v1 prefix=datadir")
        assert exc.code == ErrorCode.MISSING_CONFIG
        assert exc.param == "tag"
        assert exc.message == "snapshot config missing value for tag. Example: tag=v1 prefix=datadir"
