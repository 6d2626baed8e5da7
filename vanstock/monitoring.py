"""Monitoring utilities: retry logic, error tracking."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import aiosqlite
import httpx
import sentry_sdk
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings, get_settings
from .errors import VanStockError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def init_monitoring(settings: Settings | None = None) -> bool:
    """Initialise Sentry if a DSN is configured."""
    settings = settings or get_settings()
    if not settings.sentry_dsn:
        return False
    sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.environment)
    logger.info("Sentry initialised", extra={"environment": settings.environment})
    return True


def capture_exception(error: Exception, context: dict | None = None) -> None:
    """Capture exception to Sentry if configured."""
    settings = get_settings()
    if settings.sentry_dsn:
        with sentry_sdk.new_scope() as scope:
            if context:
                for key, value in context.items():
                    scope.set_extra(key, value)
            sentry_sdk.capture_exception(error)
    logger.error(
        "error_captured",
        extra={"error_type": type(error).__name__, "error": str(error)},
        exc_info=error,
    )


def _log_retry(retry_state) -> None:
    logger.warning(
        "Retrying %s after error: %s, attempt %d/3",
        retry_state.fn.__name__,
        retry_state.outcome.exception(),
        retry_state.attempt_number,
    )


# "database is locked" and friends; domain errors are never retried
storage_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception_type(aiosqlite.OperationalError),
    before_sleep=_log_retry,
    reraise=True,
)

# Network issues talking to the order service
http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.TransportError, TimeoutError)),
    before_sleep=_log_retry,
    reraise=True,
)


def with_error_capture(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """Decorator to capture unexpected errors to Sentry for async functions."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except VanStockError:
            raise
        except Exception as e:
            capture_exception(e, {"function": func.__name__})
            raise

    return wrapper
