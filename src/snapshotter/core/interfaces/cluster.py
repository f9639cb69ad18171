"""Cluster resource client interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from snapshotter.core.domain import (
    ClaimSpec,
    PersistentVolumeInfo,
    VolumeSpec,
    WorkloadEvent,
)


class ClusterClient(ABC):
    """Interface for cluster storage objects and workload watching.

    Implementations:
    - KubernetesClusterClient: kubernetes_asyncio
    """

    @abstractmethod
    def watch_workloads(self, selector: str) -> AsyncIterator[WorkloadEvent]:
        """Stream workload lifecycle events matching a label selector.

        Every subscription starts with an ADDED event per existing workload.
        The stream ends on server timeout; API failures are delivered as a
        final ERROR event. Callers resubscribe in both cases.
        """
        ...

    @abstractmethod
    async def create_claim(self, spec: ClaimSpec) -> bool:
        """Create a PersistentVolumeClaim.

        Returns:
            True if created, False if it already existed
        """
        ...

    @abstractmethod
    async def create_volume(self, spec: VolumeSpec) -> bool:
        """Create a PersistentVolume.

        Returns:
            True if created, False if it already existed
        """
        ...

    @abstractmethod
    async def delete_claim(self, namespace: str, name: str) -> bool:
        """Delete a PersistentVolumeClaim.

        Returns:
            True if deleted, False if it did not exist
        """
        ...

    # Restore tool operations

    @abstractmethod
    async def list_volumes(self) -> list[PersistentVolumeInfo]:
        ...

    @abstractmethod
    async def get_stateful_set(self, namespace: str, name: str) -> dict[str, Any]:
        """Return the StatefulSet definition, ready to be created again."""
        ...

    @abstractmethod
    async def create_stateful_set(self, namespace: str, definition: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete_stateful_set(self, namespace: str, name: str) -> None:
        """Delete the StatefulSet, leaving its pods running (orphan)."""
        ...

    @abstractmethod
    async def delete_pod(self, namespace: str, name: str) -> None:
        ...

    # Snapshot tool operations

    @abstractmethod
    async def get_pod_claims(self, namespace: str, name: str) -> list[str] | None:
        """Volume claim names mounted by a pod, in volume order.

        Returns:
            Claim names, or None if the pod does not exist
        """
        ...

    @abstractmethod
    async def get_claim_volume(self, namespace: str, name: str) -> str | None:
        """Name of the PersistentVolume a claim is bound to, None if missing or unbound."""
        ...

    @abstractmethod
    async def get_volume(self, name: str) -> PersistentVolumeInfo | None:
        ...
