"""Unit tests for the snapshot flow."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from snapshotter.core.domain import DiskLocation, PersistentVolumeInfo
from snapshotter.core.errors import MissingConfigError, SnapshotTakeError, VolumeNotFoundError
from snapshotter.snapshot import SnapshotPlan, SnapshotTaker, generate_name, parse_config
from snapshotter.snapshot.snapshot import EXAMPLE_CONFIG


class FastTaker(SnapshotTaker):
    SYNC_SETTLE = 0.0
    SETTLE_AFTER = 0.0
    TIMEOUT = 1.0


PLAN = SnapshotPlan(
    project="my-project",
    namespace="eth-mainnet",
    tag="v2",
    prefix="datadir",
    pod="mindreader-v3-1",
)


@pytest.fixture
def snapshot_cluster(mock_cluster: AsyncMock) -> AsyncMock:
    mock_cluster.get_pod_claims.return_value = ["cache-mindreader-v3-1", "datadir-mindreader-v3-1"]
    mock_cluster.get_claim_volume.return_value = "pvc-1234"
    mock_cluster.get_volume.return_value = PersistentVolumeInfo(
        name="pvc-1234",
        labels={
            "failure-domain.beta.kubernetes.io/zone": "us-central1-b",
            "failure-domain.beta.kubernetes.io/region": "us-central1",
        },
        gce_pd_name="gke-disk-abc",
    )
    return mock_cluster


@pytest.fixture(autouse=True)
def no_sync():
    with patch("snapshotter.snapshot.snapshot.os.sync") as sync:
        yield sync


class TestGenerateName:
    def test_block_number_padded_to_ten_digits(self) -> None:
        assert generate_name("eth-mainnet", "v2", 13642743) == "eth-mainnet-v2-0013642743"

    def test_wide_block_number_not_truncated(self) -> None:
        assert generate_name("ns", "t", 12345678901) == "ns-t-12345678901"

    def test_negative_block_number(self) -> None:
        with pytest.raises(ValueError):
            generate_name("ns", "t", -1)


class TestSnapshotPlan:
    def test_from_config_string(self) -> None:
        plan = SnapshotPlan.from_config(parse_config(EXAMPLE_CONFIG), "node-0")

        assert plan == SnapshotPlan(
            project="mygcpproject",
            namespace="default",
            tag="v1",
            prefix="datadir",
            pod="node-0",
            archive=True,
        )
        assert plan.snapshot_name(7) == "default-v1-0000000007"

    def test_archive_only_when_true(self) -> None:
        conf = parse_config("tag=v1 namespace=ns project=p prefix=datadir archive=yes")

        assert SnapshotPlan.from_config(conf, "node-0").archive is False

    @pytest.mark.parametrize("missing", ["tag", "project", "namespace", "prefix", "archive"])
    def test_missing_key(self, missing: str) -> None:
        conf = parse_config(EXAMPLE_CONFIG)
        del conf[missing]

        with pytest.raises(MissingConfigError) as exc_info:
            SnapshotPlan.from_config(conf, "node-0")

        assert exc_info.value.param == missing
        assert EXAMPLE_CONFIG in exc_info.value.message

    def test_bare_key_counts_as_missing(self) -> None:
        conf = parse_config("tag namespace=ns project=p prefix=datadir archive=false")

        with pytest.raises(MissingConfigError, match="missing value for tag"):
            SnapshotPlan.from_config(conf, "node-0")

    def test_missing_pod(self) -> None:
        with pytest.raises(MissingConfigError, match="pod"):
            SnapshotPlan.from_config(parse_config(EXAMPLE_CONFIG), "")


class TestLocateDisk:
    async def test_last_matching_claim_to_disk(self, mock_disks, snapshot_cluster) -> None:
        snapshot_cluster.get_pod_claims.return_value = [
            "datadir-old",
            "cache-mindreader-v3-1",
            "datadir-mindreader-v3-1",
        ]

        location = await FastTaker(mock_disks, snapshot_cluster).locate_disk(
            "eth-mainnet", "mindreader-v3-1", "datadir"
        )

        assert location == DiskLocation(
            name="gke-disk-abc", zone="us-central1-b", region="us-central1"
        )
        snapshot_cluster.get_pod_claims.assert_awaited_once_with("eth-mainnet", "mindreader-v3-1")
        snapshot_cluster.get_claim_volume.assert_awaited_once_with(
            "eth-mainnet", "datadir-mindreader-v3-1"
        )
        snapshot_cluster.get_volume.assert_awaited_once_with("pvc-1234")

    async def test_missing_pod(self, mock_disks, snapshot_cluster) -> None:
        snapshot_cluster.get_pod_claims.return_value = None

        with pytest.raises(SnapshotTakeError, match="pod mindreader-v3-1 not found"):
            await FastTaker(mock_disks, snapshot_cluster).locate_disk(
                "eth-mainnet", "mindreader-v3-1", "datadir"
            )

    async def test_no_matching_claim(self, mock_disks, snapshot_cluster) -> None:
        with pytest.raises(VolumeNotFoundError):
            await FastTaker(mock_disks, snapshot_cluster).locate_disk(
                "eth-mainnet", "mindreader-v3-1", "blocks"
            )

        snapshot_cluster.get_claim_volume.assert_not_awaited()

    async def test_unbound_claim(self, mock_disks, snapshot_cluster) -> None:
        snapshot_cluster.get_claim_volume.return_value = None

        with pytest.raises(VolumeNotFoundError, match="not bound"):
            await FastTaker(mock_disks, snapshot_cluster).locate_disk(
                "eth-mainnet", "mindreader-v3-1", "datadir"
            )

    async def test_volume_without_region_label(self, mock_disks, snapshot_cluster) -> None:
        snapshot_cluster.get_volume.return_value = PersistentVolumeInfo(
            name="pvc-1234",
            csi_volume_handle="projects/p/zones/us-central1-b/disks/pvc-1234",
        )

        with pytest.raises(SnapshotTakeError, match="cannot find region for PV pvc-1234"):
            await FastTaker(mock_disks, snapshot_cluster).locate_disk(
                "eth-mainnet", "mindreader-v3-1", "datadir"
            )

    async def test_volume_not_backed_by_disk(self, mock_disks, snapshot_cluster) -> None:
        snapshot_cluster.get_volume.return_value = PersistentVolumeInfo(name="pvc-1234")

        with pytest.raises(SnapshotTakeError, match="not backed by a GCE disk"):
            await FastTaker(mock_disks, snapshot_cluster).locate_disk(
                "eth-mainnet", "mindreader-v3-1", "datadir"
            )


class TestTake:
    async def test_syncs_then_snapshots_in_region(
        self, mock_disks, snapshot_cluster, no_sync
    ) -> None:
        calls: list[str] = []
        no_sync.side_effect = lambda: calls.append("sync")
        mock_disks.create_snapshot.side_effect = lambda *args, **kwargs: calls.append("snapshot")

        name = await FastTaker(mock_disks, snapshot_cluster).take(PLAN, 13642743)

        assert name == "eth-mainnet-v2-0013642743"
        assert calls == ["sync", "snapshot"]
        mock_disks.create_snapshot.assert_awaited_once_with(
            "us-central1-b",
            "gke-disk-abc",
            "eth-mainnet-v2-0013642743",
            "us-central1",
            archive=False,
        )

    async def test_archive_plan(self, mock_disks, snapshot_cluster) -> None:
        plan = PLAN.model_copy(update={"archive": True})

        await FastTaker(mock_disks, snapshot_cluster).take(plan, 1)

        assert mock_disks.create_snapshot.await_args.kwargs == {"archive": True}

    async def test_unresolved_disk_requests_nothing(
        self, mock_disks, snapshot_cluster, no_sync
    ) -> None:
        snapshot_cluster.get_pod_claims.return_value = []

        with pytest.raises(VolumeNotFoundError):
            await FastTaker(mock_disks, snapshot_cluster).take(PLAN, 1)

        no_sync.assert_not_called()
        mock_disks.create_snapshot.assert_not_awaited()

    async def test_provider_error_is_wrapped(self, mock_disks, snapshot_cluster) -> None:
        mock_disks.create_snapshot.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(SnapshotTakeError, match="could not create snapshot .*quota exceeded"):
            await FastTaker(mock_disks, snapshot_cluster).take(PLAN, 1)

    async def test_times_out(self, mock_disks, snapshot_cluster) -> None:
        taker = FastTaker(mock_disks, snapshot_cluster)
        taker.TIMEOUT = 0.05
        taker.SETTLE_AFTER = 5.0

        with pytest.raises(SnapshotTakeError, match="not taken within"):
            await asyncio.wait_for(taker.take(PLAN, 1), timeout=2.0)

    async def test_client_timeout_is_not_the_deadline(self, mock_disks, snapshot_cluster) -> None:
        """A TimeoutError from the cluster client propagates unchanged."""
        snapshot_cluster.get_pod_claims.side_effect = TimeoutError("read timed out")

        with pytest.raises(TimeoutError, match="read timed out"):
            await FastTaker(mock_disks, snapshot_cluster).take(PLAN, 1)
