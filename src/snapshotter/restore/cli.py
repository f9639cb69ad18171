"""Restore CLI.

Usage:
    snapshotter-restore eth-mainnet mindreader-v3-1 latest -p my-project
    snapshotter-restore eth-mainnet mindreader-v3-1 eth-mainnet-v2-0013642743

`latest` selects the most recent snapshot whose name starts with the
namespace. SNAPSHOTTER_GCP__PROJECT avoids passing --project each time.
"""

import argparse
import asyncio
import sys

from snapshotter.adapters.cluster import KubernetesClusterClient, create_api_client
from snapshotter.adapters.disk import GCEDiskClient
from snapshotter.app.config import get_settings
from snapshotter.app.logging import setup_logging
from snapshotter.core.errors import SnapshotterError
from snapshotter.restore.restore import SnapshotRestorer


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="snapshotter-restore",
        description=(
            "Restore a StatefulSet pod's disk from a snapshot. "
            "Use `latest` to restore from the namespace's most recent snapshot."
        ),
    )
    parser.add_argument("namespace", help="Namespace of the pod")
    parser.add_argument("pod", help="StatefulSet pod whose disk is replaced")
    parser.add_argument("snapshot", help="Snapshot name, or `latest`")
    parser.add_argument("-p", "--project", default=None, help="GCP project name")
    return parser.parse_args(argv)


async def restore(namespace: str, pod: str, snapshot: str, project: str) -> None:
    settings = get_settings()
    disks = GCEDiskClient(project)
    api_client = create_api_client(settings.operator.kube_proxy_url)
    cluster = KubernetesClusterClient(api_client)
    try:
        restored = await SnapshotRestorer(disks, cluster).restore(namespace, pod, snapshot)
    finally:
        await cluster.close()
    print(f"Pod {pod} in {namespace} restored from snapshot {restored.name}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.logging)

    project = args.project or settings.gcp.project
    if not project:
        print("Error: --project (-p) must be defined", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(restore(args.namespace, args.pod, args.snapshot, project))
    except SnapshotterError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
