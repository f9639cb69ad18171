"""Cluster resource client implementations."""

from snapshotter.adapters.cluster.k8s import KubernetesClusterClient, create_api_client

__all__ = ["KubernetesClusterClient", "create_api_client"]
