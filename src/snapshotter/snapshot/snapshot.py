"""Take a snapshot of the persistent disk mounted by a pod.

Flow:
1. Resolve the disk: pod -> last volume claim starting with prefix -> PV,
   then the disk name, zone and region of that PV
2. Flush the filesystem and give it SYNC_SETTLE seconds
3. Request the snapshot, stored in the disk's region
4. Wait SETTLE_AFTER seconds before returning

The whole run is bounded by TIMEOUT.

Configuration via SnapshotConfig (SNAPSHOT_ env prefix).
"""

import asyncio
import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel

from snapshotter.app.config import get_settings
from snapshotter.core.domain import DiskLocation
from snapshotter.core.errors import MissingConfigError, SnapshotTakeError, VolumeNotFoundError
from snapshotter.core.interfaces import ClusterClient, DiskClient
from snapshotter.core.logging_schema import Component, LogEvent

logger = logging.getLogger(__name__)

_snapshot_config = get_settings().snapshot

EXAMPLE_CONFIG = "tag=v1 namespace=default project=mygcpproject prefix=datadir archive=true"
REQUIRED_KEYS = ("tag", "project", "namespace", "prefix", "archive")


def snapshot_prefix(namespace: str, tag: str) -> str:
    return f"{namespace}-{tag}"


def generate_name(namespace: str, tag: str, block_num: int) -> str:
    """`eth-mainnet-v2-0013642743`: the block number is zero-padded to 10 digits."""
    if block_num < 0:
        raise ValueError(f"block number must not be negative, got {block_num}")
    return f"{snapshot_prefix(namespace, tag)}-{block_num:010d}"


def parse_config(text: str) -> dict[str, str]:
    """Parse whitespace separated `key=value` pairs; a bare key has an empty value."""
    conf: dict[str, str] = {}
    for field in text.split():
        key, _, value = field.partition("=")
        conf[key] = value
    return conf


class SnapshotPlan(BaseModel):
    """Which pod disk to snapshot, and how the snapshot is named and stored."""

    project: str
    namespace: str
    tag: str
    prefix: str
    pod: str
    archive: bool = False

    model_config = {"frozen": True}

    @classmethod
    def from_config(cls, conf: Mapping[str, str], pod: str) -> "SnapshotPlan":
        """Build a plan from `key=value` settings (see EXAMPLE_CONFIG).

        Raises:
            MissingConfigError: a required key is absent or empty, or pod is empty
        """
        for key in REQUIRED_KEYS:
            if not conf.get(key):
                raise MissingConfigError(key, EXAMPLE_CONFIG)
        if not pod:
            raise MissingConfigError("pod", "--pod mindreader-v3-1 (defaults to $HOSTNAME)")
        return cls(
            project=conf["project"],
            namespace=conf["namespace"],
            tag=conf["tag"],
            prefix=conf["prefix"],
            pod=pod,
            archive=conf["archive"] == "true",
        )

    def snapshot_name(self, block_num: int) -> str:
        return generate_name(self.namespace, self.tag, block_num)


class SnapshotTaker:
    """Snapshots the disk behind a pod's volume claim."""

    SYNC_SETTLE: float = _snapshot_config.sync_settle
    SETTLE_AFTER: float = _snapshot_config.settle_after
    TIMEOUT: float = _snapshot_config.timeout

    def __init__(self, disks: DiskClient, cluster: ClusterClient) -> None:
        self._disks = disks
        self._cluster = cluster

    async def take(self, plan: SnapshotPlan, block_num: int) -> str:
        """Snapshot the pod's disk.

        Returns:
            Name of the requested snapshot

        Raises:
            SnapshotTakeError: the pod or its disk cannot be resolved, the
                request failed, or the run exceeded TIMEOUT
            VolumeNotFoundError: no bound volume claim matches plan.prefix
        """
        name = plan.snapshot_name(block_num)
        deadline = asyncio.timeout(self.TIMEOUT)
        try:
            async with deadline:
                await self._take(plan, name)
        except TimeoutError as exc:
            if not deadline.expired():
                raise
            raise SnapshotTakeError(
                f"snapshot {name} not taken within {self.TIMEOUT:.0f}s"
            ) from exc
        return name

    async def _take(self, plan: SnapshotPlan, name: str) -> None:
        location = await self.locate_disk(plan.namespace, plan.pod, plan.prefix)

        await asyncio.to_thread(os.sync)
        logger.info(
            "Filesystem synced",
            extra={"event": LogEvent.FILESYSTEM_SYNCED, "component": Component.SNAPSHOT,
                   "settle_s": self.SYNC_SETTLE},
        )
        await asyncio.sleep(self.SYNC_SETTLE)

        try:
            await self._disks.create_snapshot(
                location.zone, location.name, name, location.region, archive=plan.archive
            )
        except Exception as e:
            raise SnapshotTakeError(
                f"could not create snapshot {name} of disk {location.name}: {e}"
            ) from e

        logger.info(
            "Snapshot requested",
            extra={"event": LogEvent.SNAPSHOT_CREATED, "component": Component.SNAPSHOT,
                   "snapshot": name, "pd_name": location.name, "zone": location.zone,
                   "storage_location": location.region, "archive": plan.archive},
        )
        await asyncio.sleep(self.SETTLE_AFTER)

    async def locate_disk(self, namespace: str, pod: str, prefix: str) -> DiskLocation:
        """Disk behind the pod's last volume claim whose name starts with prefix."""
        claims = await self._cluster.get_pod_claims(namespace, pod)
        if claims is None:
            raise SnapshotTakeError(f"pod {pod} not found in namespace {namespace}")

        matching = [claim for claim in claims if claim.startswith(prefix)]
        if not matching:
            raise VolumeNotFoundError(f"pod {pod} has no volume claim starting with {prefix!r}")
        claim = matching[-1]

        pv_name = await self._cluster.get_claim_volume(namespace, claim)
        if pv_name is None:
            raise VolumeNotFoundError(f"volume claim {claim} in {namespace} is not bound")
        volume = await self._cluster.get_volume(pv_name)
        if volume is None:
            raise VolumeNotFoundError(f"persistent volume {pv_name} not found")

        disk_name = volume.disk_name
        if not disk_name:
            raise SnapshotTakeError(f"persistent volume {pv_name} is not backed by a GCE disk")
        zone = volume.zone
        if not zone:
            raise SnapshotTakeError(
                f"cannot find zone for PV {pv_name}, no failure-domain.beta.kubernetes.io/zone "
                "or topology.kubernetes.io/zone label on PV"
            )
        region = volume.region
        if not region:
            raise SnapshotTakeError(
                f"cannot find region for PV {pv_name}, no failure-domain.beta.kubernetes.io/region "
                "or topology.kubernetes.io/region label on PV"
            )
        return DiskLocation(name=disk_name, zone=zone, region=region)
