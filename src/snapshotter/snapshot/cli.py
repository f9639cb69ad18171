"""Snapshot CLI.

Usage:
    snapshotter-snapshot take --config "tag=v1 namespace=eth-mainnet project=p prefix=datadir archive=false"
    snapshotter-snapshot take --tag v2 --namespace eth-mainnet --prefix datadir -p p --block-num 13642743
    snapshotter-snapshot list --namespace eth-mainnet --tag v2 -p my-project

`take` snapshots the disk of --pod (default $HOSTNAME). Values not given on
the command line come from SNAPSHOTTER_SNAPSHOT__* and SNAPSHOTTER_GCP__PROJECT;
--config pairs override both.
"""

import argparse
import asyncio
import os
import sys
import time

from snapshotter.adapters.cluster import KubernetesClusterClient, create_api_client
from snapshotter.adapters.disk import GCEDiskClient
from snapshotter.app.config import Settings, get_settings
from snapshotter.app.logging import setup_logging
from snapshotter.core.errors import SnapshotterError
from snapshotter.snapshot.snapshot import (
    SnapshotPlan,
    SnapshotTaker,
    parse_config,
    snapshot_prefix,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="snapshotter-snapshot",
        description="Snapshot a pod's persistent disk, or list taken snapshots.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-p", "--project", default=None, help="GCP project name")
    commands = parser.add_subparsers(dest="command", required=True)

    take = commands.add_parser(
        "take", parents=[common], help="Snapshot the disk mounted by a pod"
    )
    take.add_argument("--config", default=None, help='e.g. "tag=v1 namespace=default prefix=datadir"')
    take.add_argument("--tag", default=None, help="Snapshot name tag, e.g. geth-v1")
    take.add_argument("--namespace", default=None)
    take.add_argument("--prefix", default=None, help="Volume claim name prefix, e.g. datadir")
    take.add_argument(
        "--archive", action="store_true", default=None, help="Use ARCHIVE snapshot storage"
    )
    take.add_argument("--pod", default=os.environ.get("HOSTNAME", ""), help="Pod name")
    take.add_argument(
        "--block-num", type=int, default=None, help="Name suffix (default: current unix time)"
    )

    lst = commands.add_parser(
        "list", parents=[common], help="List snapshots named <namespace>-<tag>-*"
    )
    lst.add_argument("--namespace", default=None)
    lst.add_argument("--tag", default=None)

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, settings: Settings) -> dict[str, str]:
    """Merge settings, command line flags and --config pairs (last wins)."""
    defaults = settings.snapshot
    archive = args.archive if args.archive is not None else defaults.archive
    conf = {
        "project": args.project or settings.gcp.project,
        "namespace": args.namespace or defaults.namespace,
        "tag": args.tag or defaults.tag,
        "prefix": args.prefix or defaults.prefix,
        "archive": "true" if archive else "false",
    }
    if args.config:
        conf.update(parse_config(args.config))
    return conf


def _clients(project: str, settings: Settings) -> tuple[GCEDiskClient, KubernetesClusterClient]:
    disks = GCEDiskClient(project)
    cluster = KubernetesClusterClient(create_api_client(settings.operator.kube_proxy_url))
    return disks, cluster


async def take(plan: SnapshotPlan, block_num: int) -> None:
    disks, cluster = _clients(plan.project, get_settings())
    try:
        name = await SnapshotTaker(disks, cluster).take(plan, block_num)
    finally:
        await cluster.close()
    print(f"Snapshot {name} requested for pod {plan.pod} in {plan.namespace}")


async def list_snapshots(project: str, namespace: str, tag: str) -> None:
    disks = GCEDiskClient(project)
    snapshots = await disks.list_snapshots(snapshot_prefix(namespace, tag))
    for snapshot in sorted(snapshots, key=lambda s: s.name):
        print(snapshot.name)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.logging)

    try:
        if args.command == "take":
            plan = SnapshotPlan.from_config(build_config(args, settings), args.pod)
            block_num = args.block_num if args.block_num is not None else int(time.time())
            asyncio.run(take(plan, block_num))
        else:
            project = args.project or settings.gcp.project
            if not project:
                print("Error: --project (-p) must be defined", file=sys.stderr)
                sys.exit(1)
            namespace = args.namespace or settings.snapshot.namespace
            if not namespace:
                print("Error: --namespace must be defined", file=sys.stderr)
                sys.exit(1)
            tag = args.tag or settings.snapshot.tag
            asyncio.run(list_snapshots(project, namespace, tag))
    except SnapshotterError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
