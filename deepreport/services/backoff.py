from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from deepreport.errors import RateLimitedError

T = TypeVar("T")


def is_rate_limited(exc: BaseException) -> bool:
    """True when the failure signals "too many requests"."""
    if isinstance(exc, RateLimitedError):
        return True
    if getattr(exc, "status_code", None) == 429:
        return True
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None) == 429


async def execute_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    label: str = "operation",
) -> T:
    """Run ``operation``, retrying rate-limited failures with exponential delay.

    The delay before retry ``n`` (zero-based attempt index) is
    ``base_delay * 2 ** n`` seconds. Any other failure propagates on the first
    occurrence. ``operation`` may run several times, so it must be safe to repeat.
    """
    attempts = max(int(max_attempts), 1)
    attempt = 0

    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_rate_limited(exc):
                raise
            if attempt + 1 >= attempts:
                logger.error(f"{label} still rate limited after {attempts} attempts")
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{label} rate limited (attempt {attempt + 1}/{attempts}), retrying in {delay:.2f}s"
            )
        await asyncio.sleep(delay)
        attempt += 1
