"""Fixtures for snapshotter unit tests."""

from unittest.mock import AsyncMock

import pytest

from snapshotter.control.reconciler import Reconciler
from snapshotter.control.registry import ProcessingRegistry
from snapshotter.core.domain import DiskInfo, SnapshotInfo, Workload
from snapshotter.core.interfaces import ClusterClient, DiskClient

SOURCE = "dfuse.io/snapshot-source"
ZONE = "dfuse.io/snapshot-to-zone"


class FastReconciler(Reconciler):
    """Reconciler with short intervals for tests."""

    READINESS_POLL_INTERVAL = 0.01
    READINESS_TIMEOUT = 1.0
    DELETE_POLL_INTERVAL = 0.01
    DELETE_WAIT_TIMEOUT = 1.0


def make_workload(
    name: str = "restore-job",
    namespace: str = "eth-mainnet",
    snapshot: str | None = "snap-123",
    zone: str | None = "us-central1-b",
    claim_names: list[str] | None = None,
    active: int = 1,
    succeeded: int = 0,
    failed: int = 0,
) -> Workload:
    annotations: dict[str, str] = {}
    if snapshot is not None:
        annotations[SOURCE] = snapshot
    if zone is not None:
        annotations[ZONE] = zone
    if claim_names is None:
        claim_names = [f"datadir-{snapshot}"] if snapshot else []
    return Workload(
        name=name,
        namespace=namespace,
        annotations=annotations,
        claim_names=claim_names,
        active=active,
        succeeded=succeeded,
        failed=failed,
    )


def make_disk(name: str = "datadir-snap-123", status: str = "READY", size_gb: int = 150) -> DiskInfo:
    return DiskInfo(name=name, zone="us-central1-b", status=status, size_gb=size_gb)


@pytest.fixture
def mock_disks() -> AsyncMock:
    """DiskClient mock: disk missing, snapshot of 100 GB."""
    disks = AsyncMock(spec=DiskClient)
    disks.get = AsyncMock(return_value=None)
    disks.create = AsyncMock()
    disks.delete = AsyncMock(return_value=True)
    disks.get_snapshot = AsyncMock(
        return_value=SnapshotInfo(
            name="snap-123",
            size_gb=100,
            self_link="https://www.googleapis.com/compute/v1/projects/p/global/snapshots/snap-123",
        )
    )
    disks.list_snapshots = AsyncMock(return_value=[])
    return disks


@pytest.fixture
def mock_cluster() -> AsyncMock:
    """ClusterClient mock: every write succeeds."""
    cluster = AsyncMock(spec=ClusterClient)
    cluster.create_claim = AsyncMock(return_value=True)
    cluster.create_volume = AsyncMock(return_value=True)
    cluster.delete_claim = AsyncMock(return_value=True)
    cluster.list_volumes = AsyncMock(return_value=[])
    return cluster


@pytest.fixture
def registry() -> ProcessingRegistry:
    return ProcessingRegistry()


@pytest.fixture
def reconciler(
    mock_disks: AsyncMock, mock_cluster: AsyncMock, registry: ProcessingRegistry
) -> FastReconciler:
    return FastReconciler(mock_disks, mock_cluster, registry)


@pytest.fixture
def workload_factory():
    """Builds annotated workloads (see make_workload)."""
    return make_workload


@pytest.fixture
def disk_factory():
    return make_disk
