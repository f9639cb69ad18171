"""Kubernetes cluster client (kubernetes_asyncio).

Watches batch Jobs and manages the PVC/PV pairs bound to provisioned disks.
Also exposes the StatefulSet/Pod/PVC/PV operations used by the restore and
snapshot tools.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from kubernetes_asyncio import client, watch
from kubernetes_asyncio import config as k8s_config
from kubernetes_asyncio.client.exceptions import ApiException
from kubernetes_asyncio.config import ConfigException

from snapshotter.core.domain import (
    ClaimSpec,
    EventType,
    PersistentVolumeInfo,
    VolumeSpec,
    Workload,
    WorkloadEvent,
)
from snapshotter.core.interfaces import ClusterClient
from snapshotter.core.logging_schema import Component, LogEvent

logger = logging.getLogger(__name__)

# Server-populated metadata that must not be sent back on create
_SERVER_METADATA = (
    "resourceVersion",
    "uid",
    "creationTimestamp",
    "generation",
    "managedFields",
    "selfLink",
)


def create_api_client(proxy_url: str) -> client.ApiClient:
    """In-cluster configuration, else an unauthenticated `kubectl proxy` endpoint."""
    try:
        k8s_config.load_incluster_config()
    except ConfigException:
        configuration = client.Configuration()
        configuration.host = proxy_url
        logger.info(
            "Not running in cluster, using proxy",
            extra={"event": LogEvent.APP_STARTED, "host": proxy_url},
        )
        return client.ApiClient(configuration)
    return client.ApiClient()


def to_workload(job: client.V1Job) -> Workload:
    """Convert a V1Job to the Workload domain model."""
    meta = job.metadata
    status = job.status

    claim_names: list[str] = []
    pod_spec = job.spec.template.spec if job.spec and job.spec.template else None
    if pod_spec is not None:
        for volume in pod_spec.volumes or []:
            if volume.persistent_volume_claim is not None:
                claim_names.append(volume.persistent_volume_claim.claim_name)

    return Workload(
        name=meta.name or "",
        namespace=meta.namespace or "",
        annotations=meta.annotations or {},
        claim_names=claim_names,
        active=(status.active or 0) if status else 0,
        succeeded=(status.succeeded or 0) if status else 0,
        failed=(status.failed or 0) if status else 0,
    )


def to_volume_info(pv: client.V1PersistentVolume) -> PersistentVolumeInfo:
    spec = pv.spec
    claim_ref = spec.claim_ref if spec else None
    gce_disk = spec.gce_persistent_disk if spec else None
    csi = spec.csi if spec else None
    return PersistentVolumeInfo(
        name=pv.metadata.name or "",
        labels=pv.metadata.labels or {},
        claim_name=(claim_ref.name or "") if claim_ref else "",
        claim_namespace=(claim_ref.namespace or "") if claim_ref else "",
        gce_pd_name=(gce_disk.pd_name or "") if gce_disk else "",
        csi_volume_handle=(csi.volume_handle or "") if csi else "",
    )


class KubernetesClusterClient(ClusterClient):
    """Cluster client over one shared ApiClient."""

    def __init__(self, api_client: client.ApiClient) -> None:
        self._api_client = api_client
        self._batch = client.BatchV1Api(api_client)
        self._core = client.CoreV1Api(api_client)
        self._apps = client.AppsV1Api(api_client)

    async def watch_workloads(self, selector: str) -> AsyncIterator[WorkloadEvent]:
        async with watch.Watch() as w:
            try:
                async for event in w.stream(
                    self._batch.list_job_for_all_namespaces,
                    label_selector=selector,
                ):
                    event_type = event["type"]
                    if event_type == EventType.ERROR:
                        yield WorkloadEvent.error(f"failed watching: {event.get('raw_object')}")
                        return
                    yield WorkloadEvent(
                        type=EventType(event_type),
                        workload=to_workload(event["object"]),
                    )
            except ApiException as exc:
                yield WorkloadEvent.error(f"watching jobs: {exc.status} {exc.reason}")

    async def create_claim(self, spec: ClaimSpec) -> bool:
        try:
            await self._core.create_namespaced_persistent_volume_claim(
                spec.namespace, spec.to_api()
            )
        except ApiException as exc:
            if exc.status == 409:
                logger.info(
                    "PVC already exists",
                    extra={
                        "event": LogEvent.CLAIM_CREATED,
                        "component": Component.CLUSTER,
                        "pvc_name": spec.name,
                        "namespace": spec.namespace,
                    },
                )
                return False
            raise
        return True

    async def create_volume(self, spec: VolumeSpec) -> bool:
        try:
            await self._core.create_persistent_volume(spec.to_api())
        except ApiException as exc:
            if exc.status == 409:
                logger.info(
                    "PV already exists",
                    extra={
                        "event": LogEvent.VOLUME_CREATED,
                        "component": Component.CLUSTER,
                        "pv_name": spec.name,
                    },
                )
                return False
            raise
        return True

    async def delete_claim(self, namespace: str, name: str) -> bool:
        try:
            await self._core.delete_namespaced_persistent_volume_claim(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                return False
            raise
        return True

    async def list_volumes(self) -> list[PersistentVolumeInfo]:
        result = await self._core.list_persistent_volume()
        return [to_volume_info(pv) for pv in result.items]

    async def get_stateful_set(self, namespace: str, name: str) -> dict[str, Any]:
        sts = await self._apps.read_namespaced_stateful_set(name, namespace)
        definition: dict[str, Any] = self._api_client.sanitize_for_serialization(sts)
        definition.setdefault("apiVersion", "apps/v1")
        definition.setdefault("kind", "StatefulSet")
        definition.pop("status", None)
        metadata = definition.get("metadata", {})
        for key in _SERVER_METADATA:
            metadata.pop(key, None)
        return definition

    async def create_stateful_set(self, namespace: str, definition: dict[str, Any]) -> None:
        await self._apps.create_namespaced_stateful_set(namespace, definition)

    async def delete_stateful_set(self, namespace: str, name: str) -> None:
        await self._apps.delete_namespaced_stateful_set(
            name, namespace, propagation_policy="Orphan"
        )

    async def delete_pod(self, namespace: str, name: str) -> None:
        await self._core.delete_namespaced_pod(name, namespace)

    async def get_pod_claims(self, namespace: str, name: str) -> list[str] | None:
        try:
            pod = await self._core.read_namespaced_pod(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise
        volumes = (pod.spec.volumes if pod.spec else None) or []
        return [
            volume.persistent_volume_claim.claim_name
            for volume in volumes
            if volume.persistent_volume_claim is not None
        ]

    async def get_claim_volume(self, namespace: str, name: str) -> str | None:
        try:
            pvc = await self._core.read_namespaced_persistent_volume_claim(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise
        return (pvc.spec.volume_name if pvc.spec else None) or None

    async def get_volume(self, name: str) -> PersistentVolumeInfo | None:
        try:
            pv = await self._core.read_persistent_volume(name)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise
        return to_volume_info(pv)

    async def close(self) -> None:
        await self._api_client.close()
