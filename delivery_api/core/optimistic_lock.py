"""
Delivery API — Optimistic locking retry decorator

Order rows carry a version_id that every write increments. A status update
reads the order, validates the transition, then writes with
WHERE version_id = <read_version>. If another writer got there first the
write matches no row and StaleDataError is raised; the decorated function is
then re-run from the read, so the transition is validated again against the
fresh status.
"""
import asyncio
import functools
import logging
import random

from delivery_api.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class StaleDataError(Exception):
    """Raised when the order's version_id changed between our read and write."""


def with_optimistic_retry(max_retries: int | None = None):
    """
    Decorator for async functions that perform optimistic-lock writes.
    On StaleDataError, retries with exponential backoff + jitter.

    Usage:
        @with_optimistic_retry()
        async def update_order_status(storage, ...):
            ...
    """
    _max = max_retries or settings.OPT_LOCK_MAX_RETRIES

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, _max + 1):
                try:
                    return await func(*args, **kwargs)
                except StaleDataError:
                    if attempt == _max:
                        logger.error(
                            "Optimistic lock conflict unresolved after %d retries for %s",
                            _max, func.__name__,
                        )
                        raise
                    base_delay = settings.OPT_LOCK_BASE_DELAY_MS / 1000.0
                    max_delay = settings.OPT_LOCK_MAX_DELAY_MS / 1000.0
                    jitter = random.uniform(0, settings.OPT_LOCK_JITTER_MS / 1000.0)
                    delay = min(base_delay * (2 ** attempt), max_delay) + jitter
                    logger.warning(
                        "StaleDataError on attempt %d/%d for %s, retrying in %.3fs",
                        attempt, _max, func.__name__, delay,
                    )
                    await asyncio.sleep(delay)
        return wrapper
    return decorator
