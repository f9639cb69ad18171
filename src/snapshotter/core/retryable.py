"""Retryable error classification with exponential backoff retry.

Classifies errors as retryable (transient) or non-retryable (permanent).
The reconciler only uses the classification for logging (a failed attempt is
abandoned and the next workload event retries). The restore tool retries
disk deletion with with_retry().

Usage:
    from snapshotter.core.retryable import classify_error, with_retry

    error_class = classify_error(exc)
    result = await with_retry(lambda: some_async_operation())
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from google.api_core import exceptions as gapi_exceptions
from kubernetes_asyncio.client.exceptions import ApiException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DiskInUseError(Exception):
    """Disk is still attached to an instance (detach usually follows pod deletion)."""

    def __init__(self, pd_name: str, message: str = "") -> None:
        self.pd_name = pd_name
        super().__init__(message or f"disk {pd_name} is in use by another resource")


# =============================================================================
# Google API error classification
# =============================================================================

GOOGLE_RETRYABLE = (
    gapi_exceptions.TooManyRequests,
    gapi_exceptions.InternalServerError,
    gapi_exceptions.BadGateway,
    gapi_exceptions.ServiceUnavailable,
    gapi_exceptions.GatewayTimeout,
    gapi_exceptions.DeadlineExceeded,
)

GOOGLE_NON_RETRYABLE = (
    gapi_exceptions.BadRequest,
    gapi_exceptions.Unauthorized,
    gapi_exceptions.Forbidden,
    gapi_exceptions.NotFound,
    gapi_exceptions.Conflict,
)


# =============================================================================
# Kubernetes API error classification
# =============================================================================


def is_kube_retryable(exc: ApiException) -> bool:
    """Check if Kubernetes ApiException is retryable."""
    status = exc.status or 0
    # 429 Rate limit / 409 optimistic concurrency - retryable
    if status in (409, 429):
        return True
    if 400 <= status < 500:
        return False
    # 5xx and connection-level failures (status 0) - retryable
    return True


# =============================================================================
# Unified classification
# =============================================================================


def is_retryable(exc: Exception) -> bool:
    """Check if error is retryable (transient)."""
    return classify_error(exc) == "retryable"


def classify_error(exc: Exception) -> str:
    """Classify error as 'retryable', 'permanent', or 'unknown'.

    Args:
        exc: Exception to classify

    Returns:
        'retryable': Transient error, can retry
        'permanent': Permanent error, should not retry
        'unknown': Cannot classify
    """
    if isinstance(exc, asyncio.TimeoutError):
        return "retryable"

    # Disk still attached - retryable (detach follows pod deletion)
    if isinstance(exc, DiskInUseError):
        return "retryable"

    if isinstance(exc, GOOGLE_RETRYABLE):
        return "retryable"
    if isinstance(exc, GOOGLE_NON_RETRYABLE):
        return "permanent"

    if isinstance(exc, ApiException):
        return "retryable" if is_kube_retryable(exc) else "permanent"

    if isinstance(exc, (ConnectionError, OSError)):
        return "retryable"

    return "unknown"


# =============================================================================
# Retry utility
# =============================================================================


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> T:
    """Execute async operation with exponential backoff retry.

    Only retries for retryable and unclassified errors.
    Permanent errors are raised immediately.

    Args:
        coro_factory: Factory function that creates new coroutine for each attempt
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 30.0)

    Returns:
        Result of successful operation

    Raises:
        Exception: The last exception if all retries fail, or immediately
                   for non-retryable errors

    Example:
        await with_retry(lambda: disks.delete(zone, name), max_retries=20,
                         base_delay=5.0, max_delay=5.0)
    """
    last_exc: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as exc:
            last_exc = exc
            error_class = classify_error(exc)

            if error_class == "permanent":
                logger.warning(
                    "Permanent error (not retrying): %s",
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise

            if attempt == max_retries:
                logger.error(
                    "Max retries exceeded (%d attempts): %s",
                    max_retries + 1,
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise

            delay = min(base_delay * (2**attempt), max_delay)
            # Jitter: 50% ~ 150% of delay
            jittered_delay = delay * (0.5 + random.random())
            logger.warning(
                "Retryable error (attempt %d/%d, retry in %.1fs): %s",
                attempt + 1,
                max_retries + 1,
                jittered_delay,
                exc,
                extra={
                    "error_class": error_class,
                    "attempt": attempt + 1,
                    "delay": jittered_delay,
                },
            )
            await asyncio.sleep(jittered_delay)

    if last_exc:
        raise last_exc
    raise RuntimeError("Unexpected state in with_retry")
