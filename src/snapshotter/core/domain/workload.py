"""Workload (batch Job) domain model and provisioning intent.

A Workload is only observed, never mutated. The provisioning intent
(ProvisionRequest) is derived from two annotations and from the volume
claim references of the Job's pod template.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from snapshotter.core.errors import ClaimReferenceNotFoundError, MissingAnnotationError


class EventType(StrEnum):
    """Watch event types (as sent by the API server)."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


class Workload(BaseModel):
    """Observed state of a batch Job."""

    name: str
    namespace: str
    annotations: dict[str, str] = Field(default_factory=dict)
    claim_names: list[str] = Field(default_factory=list)  # pod template PVC references, in order
    active: int = 0
    succeeded: int = 0
    failed: int = 0

    model_config = {"frozen": True}

    @property
    def is_finished(self) -> bool:
        """Completed successfully with nothing left running or failed."""
        return self.active == 0 and self.failed == 0 and self.succeeded != 0


class WorkloadEvent(BaseModel):
    """One item of the workload watch stream."""

    type: EventType
    workload: Workload | None = None
    message: str = ""  # set on ERROR events

    model_config = {"frozen": True}

    @classmethod
    def error(cls, message: str) -> "WorkloadEvent":
        return cls(type=EventType.ERROR, message=message)


class ProvisionRequest(BaseModel):
    """Everything needed to provision (or tear down) one job's disk."""

    snapshot_name: str
    zone: str
    namespace: str
    job_name: str
    pvc_name: str
    pd_name: str

    model_config = {"frozen": True}

    @classmethod
    def from_workload(
        cls,
        workload: Workload,
        source_annotation: str,
        zone_annotation: str,
    ) -> "ProvisionRequest":
        """Derive the request from workload metadata.

        Raises:
            MissingAnnotationError: either annotation is absent or empty
            ClaimReferenceNotFoundError: no claim reference contains the snapshot name
        """
        snapshot_name = workload.annotations.get(source_annotation, "")
        if not snapshot_name:
            raise MissingAnnotationError(source_annotation, workload.name)

        zone = workload.annotations.get(zone_annotation, "")
        if not zone:
            raise MissingAnnotationError(zone_annotation, workload.name)

        pvc_name = claim_name_for_snapshot(workload.claim_names, snapshot_name)
        if not pvc_name:
            raise ClaimReferenceNotFoundError(snapshot_name, workload.name)

        return cls(
            snapshot_name=snapshot_name,
            zone=zone,
            namespace=workload.namespace,
            job_name=workload.name,
            pvc_name=pvc_name,
            pd_name=pvc_name,  # disk is named after the claim
        )


def claim_name_for_snapshot(claim_names: list[str], snapshot_name: str) -> str:
    """Return the claim reference containing snapshot_name, last match wins."""
    found = ""
    for claim_name in claim_names:
        if snapshot_name in claim_name:
            found = claim_name
    return found
