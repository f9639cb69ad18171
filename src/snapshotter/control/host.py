"""Control loop host - keeps one job watch subscription alive.

Each subscription delivers the existing jobs as ADDED events first, then
changes. When it fails or ends, the host waits RESTART_DELAY and subscribes
again; replayed events are harmless because the reconciler is idempotent.

Configuration via OperatorConfig (OPERATOR_ env prefix).
"""

import asyncio
import logging
from contextlib import aclosing

from snapshotter.app.config import get_settings
from snapshotter.app.metrics.collector import WATCH_RESTARTS_TOTAL
from snapshotter.control.reconciler import Reconciler
from snapshotter.core.interfaces import ClusterClient
from snapshotter.core.logging_schema import Component, LogEvent

logger = logging.getLogger(__name__)

_operator_config = get_settings().operator


class ControlLoopHost:
    """Subscribes to job events and feeds them to the reconciler, forever."""

    RESTART_DELAY: float = _operator_config.restart_delay
    LABEL_SELECTOR: str = _operator_config.label_selector

    def __init__(
        self,
        reconciler: Reconciler,
        cluster: ClusterClient,
        selector: str | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._cluster = cluster
        self._selector = selector or self.LABEL_SELECTOR
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Stop after the current event; takes effect at the next event or restart."""
        self._running = False

    async def run(self) -> None:
        """Main loop. Only returns after stop() or on cancellation."""
        self._running = True
        logger.info(
            "Starting control loop",
            extra={
                "event": LogEvent.APP_STARTED,
                "component": Component.HOST,
                "selector": self._selector,
            },
        )

        try:
            while self._running:
                await self.run_once()
                if not self._running:
                    break
                await asyncio.sleep(self.RESTART_DELAY)
        finally:
            logger.info(
                "Control loop stopped",
                extra={"event": LogEvent.APP_STOPPED, "component": Component.HOST},
            )

    async def run_once(self) -> bool:
        """One subscription, consumed until it ends or fails.

        Returns:
            True if the stream ended normally, False if it failed
        """
        logger.info(
            "Watching jobs",
            extra={
                "event": LogEvent.WATCH_STARTED,
                "component": Component.HOST,
                "selector": self._selector,
            },
        )
        try:
            async with aclosing(self._cluster.watch_workloads(self._selector)) as events:
                async for event in events:
                    await self._reconciler.handle(event)
                    if not self._running:
                        break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            WATCH_RESTARTS_TOTAL.labels(reason="error").inc()
            logger.error(
                "Failed doing one run, waiting and restarting",
                extra={
                    "event": LogEvent.WATCH_FAILED,
                    "component": Component.HOST,
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "restart_delay": self.RESTART_DELAY,
                },
            )
            return False

        WATCH_RESTARTS_TOTAL.labels(reason="ended").inc()
        logger.info(
            "Watch ended, resubscribing",
            extra={
                "event": LogEvent.WATCH_ENDED,
                "component": Component.HOST,
                "restart_delay": self.RESTART_DELAY,
            },
        )
        return True
