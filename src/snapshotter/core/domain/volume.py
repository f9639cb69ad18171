"""Cluster storage objects: claim/volume specs and observed persistent volumes."""

from pydantic import BaseModel, Field

ZONE_LABELS = (
    "failure-domain.beta.kubernetes.io/zone",
    "topology.kubernetes.io/zone",
)
REGION_LABELS = (
    "failure-domain.beta.kubernetes.io/region",
    "topology.kubernetes.io/region",
)


class ClaimSpec(BaseModel):
    """PersistentVolumeClaim pre-bound to a named volume."""

    name: str
    namespace: str
    volume_name: str
    size_gb: int

    model_config = {"frozen": True}

    @property
    def storage(self) -> str:
        return f"{self.size_gb}Gi"

    def to_api(self) -> dict:
        """Convert to Kubernetes API JSON format."""
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "resources": {"requests": {"storage": self.storage}},
                # Empty class disables dynamic provisioning, the claim binds to volume_name
                "storageClassName": "",
                "volumeName": self.volume_name,
            },
        }


class VolumeSpec(BaseModel):
    """PersistentVolume backed by an existing persistent disk."""

    name: str
    pd_name: str
    size_gb: int
    fs_type: str = "ext4"

    model_config = {"frozen": True}

    @property
    def storage(self) -> str:
        return f"{self.size_gb}Gi"

    def to_api(self) -> dict:
        """Convert to Kubernetes API JSON format."""
        return {
            "apiVersion": "v1",
            "kind": "PersistentVolume",
            "metadata": {"name": self.name},
            "spec": {
                "capacity": {"storage": self.storage},
                "accessModes": ["ReadWriteOnce"],
                "persistentVolumeReclaimPolicy": "Delete",
                "gcePersistentDisk": {"pdName": self.pd_name, "fsType": self.fs_type},
            },
        }


class PersistentVolumeInfo(BaseModel):
    """Observed PersistentVolume, as needed by the restore and snapshot tools."""

    name: str
    labels: dict[str, str] = Field(default_factory=dict)
    claim_name: str = ""
    claim_namespace: str = ""
    gce_pd_name: str = ""
    csi_volume_handle: str = ""  # projects/<p>/zones/<z>/disks/<name>

    model_config = {"frozen": True}

    def matches_app(self, namespace: str, app_name: str, mount_name: str | None = None) -> bool:
        """Claim lives in namespace, ends with -<app_name> and starts with mount_name."""
        if self.claim_namespace != namespace:
            return False
        if not self.claim_name.endswith("-" + app_name):
            return False
        if mount_name is None:
            return True
        return self.claim_name.startswith(mount_name)

    @property
    def zone(self) -> str | None:
        for label in ZONE_LABELS:
            if zone := self.labels.get(label):
                return zone
        return self._handle_segment("zones")

    @property
    def region(self) -> str | None:
        for label in REGION_LABELS:
            if region := self.labels.get(label):
                return region
        return None

    @property
    def disk_name(self) -> str | None:
        if self.gce_pd_name:
            return self.gce_pd_name
        return self._handle_segment("disks")

    def _handle_segment(self, key: str) -> str | None:
        """Value following `key` in the CSI volume handle path."""
        if not self.csi_volume_handle:
            return None
        fields = self.csi_volume_handle.split("/")
        for prev, current in zip(fields, fields[1:]):
            if prev == key:
                return current
        return None


def find_volume(
    volumes: list[PersistentVolumeInfo],
    namespace: str,
    app_name: str,
    mount_name: str | None = None,
) -> PersistentVolumeInfo | None:
    for volume in volumes:
        if volume.matches_app(namespace, app_name, mount_name):
            return volume
    return None
