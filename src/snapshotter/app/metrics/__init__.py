"""Prometheus metrics module."""

import logging

from prometheus_client import start_http_server

from snapshotter.app.config import MetricsConfig
from snapshotter.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


def setup_metrics(config: MetricsConfig) -> None:
    """Expose the default registry over HTTP when enabled."""
    if not config.enabled:
        return
    start_http_server(config.port)
    logger.info(
        "Metrics server started",
        extra={"event": LogEvent.APP_STARTED, "port": config.port},
    )
