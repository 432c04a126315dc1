from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from deepreport.models.research import FetchedContent, FetchState, ResolvedSource, SearchCandidate
from deepreport.services.backoff import execute_with_backoff, is_rate_limited
from deepreport.services.fetch_tracker import FetchTracker

ContentFetcher = Callable[[str], Awaitable[FetchedContent]]
ResolvedCallback = Callable[[ResolvedSource, FetchState], None]


class ContentResolver:
    """Resolves the text body used for each selected source.

    Pre-attached content wins, then a remote fetch, then the search snippet.
    Only a rate-limit failure escapes; it aborts the whole batch.
    """

    def __init__(
        self,
        fetch_content: ContentFetcher,
        tracker: FetchTracker,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        on_resolved: ResolvedCallback | None = None,
    ):
        self.fetch_content = fetch_content
        self.tracker = tracker
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.on_resolved = on_resolved

    async def resolve(self, candidate: SearchCandidate) -> ResolvedSource:
        if candidate.content:
            return self._finish(candidate, candidate.content, FetchState.FETCHED)

        try:
            fetched = await execute_with_backoff(
                lambda: self.fetch_content(candidate.url),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                label=f"content fetch {candidate.url}",
            )
        except Exception as exc:
            if is_rate_limited(exc):
                raise
            logger.warning(f"Content fetch failed for {candidate.url}, using snippet: {exc}")
            return self._finish(candidate, candidate.snippet, FetchState.PREVIEW)

        content = (fetched.content or "").strip() if fetched else ""
        if not content:
            logger.info(f"Content fetch returned nothing for {candidate.url}, using snippet")
            return self._finish(candidate, candidate.snippet, FetchState.PREVIEW)

        return self._finish(candidate, content, FetchState.FETCHED)

    def _finish(self, candidate: SearchCandidate, content: str, state: FetchState) -> ResolvedSource:
        if state is FetchState.FETCHED:
            self.tracker.record_fetched(candidate.url)
        else:
            self.tracker.record_fallback(candidate.url)
        source = ResolvedSource(url=candidate.url, title=candidate.name, content=content)
        if self.on_resolved is not None:
            self.on_resolved(source, state)
        return source

    async def resolve_all(self, candidates: list[SearchCandidate]) -> list[ResolvedSource]:
        """Resolve every candidate concurrently, keeping input order."""
        tasks = [asyncio.create_task(self.resolve(candidate)) for candidate in candidates]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
