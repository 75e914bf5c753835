"""Optimistic-concurrency retry loop shared by the services"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from domain.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    backoff_ms: int,
    description: str = "operation",
) -> T:
    """Re-run ``operation`` after a version conflict, with linear backoff.

    ``operation`` must re-read everything it writes. Business failures raised
    on a retry (insufficient rooms, insufficient credit) propagate as they are;
    a conflict on the last attempt propagates as ``ConcurrencyConflict``.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ConcurrencyConflict as e:
            if attempt == attempts:
                logger.warning(f"{description}: retry budget exhausted after {attempts} attempts")
                raise ConcurrencyConflict(
                    f"{description} kept conflicting with concurrent writers",
                    {**e.details, "attempts": attempts},
                )
            logger.info(f"{description}: version conflict, retry {attempt}/{attempts - 1}")
            await asyncio.sleep(attempt * backoff_ms / 1000)
