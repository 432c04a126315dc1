"""Per-operation sliding-window request limits."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable

from loguru import logger

from deepreport.config import settings
from deepreport.errors import RateLimitedError

WINDOW_SECONDS = 60.0


class RateLimiter:
    """Allows at most ``limits[operation]`` calls per window for each key.

    Operations missing from the table are not limited.
    """

    def __init__(
        self,
        limits: dict[str, int],
        *,
        window: float = WINDOW_SECONDS,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limits = dict(limits)
        self.window = window
        self.enabled = enabled
        self._clock = clock
        self._hits: dict[tuple[str, str], deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, operation: str, key: str = "global") -> None:
        """Record one call, raising ``RateLimitedError`` when over the limit."""
        limit = self.limits.get(operation)
        if not self.enabled or limit is None:
            return

        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault((operation, key), deque())
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if len(hits) >= limit:
                retry_after = max(0.0, self.window - (now - hits[0]))
                logger.warning(f"Rate limit hit for {operation} ({key}): {limit}/min")
                raise RateLimitedError(
                    f"Too many {operation.replace('_', ' ')} requests. "
                    f"Try again in {int(retry_after) + 1} seconds."
                )
            hits.append(now)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


rate_limiter = RateLimiter(settings.rate_limit_table, enabled=settings.rate_limits_enabled)
