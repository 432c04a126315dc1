from __future__ import annotations

import threading
from types import MappingProxyType

from loguru import logger

from deepreport.models.research import FetchState, FetchStatus


class FetchTracker:
    """Per-run fetch counters and per-source status.

    Safe to update from concurrent resolutions; each URL should be recorded
    once. A second write for the same URL replaces the first and the counters
    are adjusted so that ``successful + fallback`` still counts each URL once.
    """

    def __init__(self, total: int):
        self.total = max(int(total), 0)
        self._successful = 0
        self._fallback = 0
        self._sources: dict[str, FetchState] = {}
        self._lock = threading.Lock()

    def record_fetched(self, url: str) -> None:
        self._record(url, FetchState.FETCHED)

    def record_fallback(self, url: str) -> None:
        self._record(url, FetchState.PREVIEW)

    def _record(self, url: str, state: FetchState) -> None:
        with self._lock:
            previous = self._sources.get(url)
            if previous is not None:
                logger.warning(f"Fetch status for {url} recorded twice ({previous.value} -> {state.value})")
                if previous is FetchState.FETCHED:
                    self._successful -= 1
                else:
                    self._fallback -= 1
            self._sources[url] = state
            if state is FetchState.FETCHED:
                self._successful += 1
            else:
                self._fallback += 1

    @property
    def completed(self) -> int:
        with self._lock:
            return self._successful + self._fallback

    def snapshot(self) -> FetchStatus:
        with self._lock:
            return FetchStatus(
                total=self.total,
                successful=self._successful,
                fallback=self._fallback,
                sources=MappingProxyType(dict(self._sources)),
            )
