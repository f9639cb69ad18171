"""JSON logging configuration with trace context and rate limiting."""

import logging
import sys
import time
from collections import defaultdict, deque
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from snapshotter.app.config import LoggingConfig, get_settings

# Per-task correlation id (copied into every asyncio task spawned from the setter)
trace_id_ctx: ContextVar[str | None] = ContextVar("trace_id", default=None)


def get_trace_id() -> str | None:
    """Get current trace_id from context."""
    return trace_id_ctx.get()


def set_trace_id(trace_id: str | None = None) -> str:
    """Set trace_id in context, generating one if not provided.

    Args:
        trace_id: Optional trace ID to set. If None, generates a short random ID.

    Returns:
        The trace ID that was set.
    """
    tid = trace_id or str(uuid4())[:8]
    trace_id_ctx.set(tid)
    return tid


def clear_trace_context() -> None:
    """Clear trace context."""
    trace_id_ctx.set(None)


class RateLimitFilter(logging.Filter):
    """Caps repeated non-error records per (event, subject) at rate_per_minute.

    The subject is the snapshot (else the job) the record is about, so a watch
    replaying the same job every few seconds is throttled while other
    snapshots keep logging. Records without an `event` extra are keyed on
    logger name and message template. ERROR and above are never dropped.

    The first record let through after a suppression carries `suppressed`,
    the number of records dropped for that key in the meantime.
    """

    WINDOW_S = 60.0

    def __init__(
        self, rate_per_minute: int = 100, clock: Callable[[], float] = time.monotonic
    ) -> None:
        super().__init__()
        self.rate_per_minute = rate_per_minute
        self._clock = clock
        self._seen: dict[tuple[str, str], deque[float]] = defaultdict(deque)
        self._suppressed: dict[tuple[str, str], int] = {}

    @staticmethod
    def key(record: logging.LogRecord) -> tuple[str, str]:
        event = getattr(record, "event", None)
        if event is None:
            return record.name, str(record.msg)
        subject = getattr(record, "snapshot", None) or getattr(record, "job", None) or ""
        return str(event), str(subject)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self.key(record)
        now = self._clock()
        seen = self._seen[key]
        while seen and now - seen[0] >= self.WINDOW_S:
            seen.popleft()

        if len(seen) >= self.rate_per_minute:
            self._suppressed[key] = self._suppressed.get(key, 0) + 1
            return False

        seen.append(now)
        if dropped := self._suppressed.pop(key, 0):
            record.suppressed = dropped
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with schema version and trace context.

    Adds the following standard fields to all logs:
    - timestamp: ISO 8601 format with timezone
    - level: Log level name
    - logger: Logger name
    - pid: Process ID
    - schema_version: Log schema version
    - service: Service name
    - trace_id: Correlation ID of the current provisioning/deletion attempt
    """

    def __init__(self, *args: Any, config: LoggingConfig | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        config = config or get_settings().logging
        self._schema_version = config.schema_version
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["pid"] = record.process

        log_record["schema_version"] = self._schema_version
        log_record["service"] = self._service

        if trace_id := get_trace_id():
            log_record["trace_id"] = trace_id

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging(config: LoggingConfig | None = None, level: int | None = None) -> None:
    """Configure JSON logging for the process.

    Args:
        config: Logging configuration. If None, uses settings.
        level: Log level. If None, uses LOGGING_LEVEL from config.
    """
    config = config or get_settings().logging

    if level is None:
        level = getattr(logging, config.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter(config=config))
    handler.addFilter(RateLimitFilter(config.rate_limit_per_minute))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Client libraries log every request at INFO/DEBUG
    for name in ("kubernetes_asyncio", "google", "urllib3", "aiohttp"):
        logging.getLogger(name).setLevel(logging.WARNING)
