"""Operator entry point.

Wires the GCE disk client and the Kubernetes cluster client into the
reconciler and runs the control loop until interrupted.

Usage:
    snapshotter-operator --gcp-project my-project
    SNAPSHOTTER_GCP__PROJECT=my-project snapshotter-operator
"""

import argparse
import asyncio
import logging
import sys

from snapshotter import __version__
from snapshotter.adapters.cluster import KubernetesClusterClient, create_api_client
from snapshotter.adapters.disk import GCEDiskClient
from snapshotter.app.config import Settings, get_settings
from snapshotter.app.logging import setup_logging
from snapshotter.app.metrics import setup_metrics
from snapshotter.control import ControlLoopHost, ProcessingRegistry, Reconciler
from snapshotter.core.errors import SetupError
from snapshotter.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="snapshotter-operator",
        description="Provision persistent disks and PVC/PV pairs for annotated jobs",
    )
    parser.add_argument(
        "--gcp-project",
        default=None,
        help="GCP project where disks are created (default: SNAPSHOTTER_GCP__PROJECT)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def _build_disk_client(project: str) -> GCEDiskClient:
    if not project:
        raise SetupError("missing GCP project (--gcp-project or SNAPSHOTTER_GCP__PROJECT)")
    try:
        return GCEDiskClient(project)
    except Exception as e:
        raise SetupError(f"creating compute client: {e}") from e


async def run_operator(settings: Settings, project: str) -> None:
    """Build the clients and run the control loop until cancelled.

    Raises:
        SetupError: a client could not be constructed
    """
    disks = _build_disk_client(project)
    try:
        api_client = create_api_client(settings.operator.kube_proxy_url)
    except Exception as e:
        raise SetupError(f"creating kubernetes client: {e}") from e

    cluster = KubernetesClusterClient(api_client)
    reconciler = Reconciler(disks, cluster, ProcessingRegistry())
    host = ControlLoopHost(reconciler, cluster, settings.operator.label_selector)

    logger.info(
        "Snapshot operator started",
        extra={"event": LogEvent.APP_STARTED, "project": project, "version": __version__},
    )
    try:
        await host.run()
    finally:
        await cluster.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.logging)

    project = args.gcp_project or settings.gcp.project
    try:
        setup_metrics(settings.metrics)
    except OSError as e:
        print(f"metrics server: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run_operator(settings, project))
    except SetupError as e:
        print(f"new operator: {e.message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down", extra={"event": LogEvent.APP_STOPPED})


if __name__ == "__main__":
    main()
