from __future__ import annotations

import asyncio
import itertools
import time
import uuid
from typing import Callable

from loguru import logger

from deepreport.config import settings
from deepreport.errors import EmptyResultError, InvalidInputError, RunInProgressError
from deepreport.models.events import SSEEvent
from deepreport.models.research import (
    TIME_FILTERS,
    PipelineStatus,
    Report,
    SearchCandidate,
    StatusSnapshot,
)
from deepreport.services.backoff import execute_with_backoff
from deepreport.services.collaborators import Collaborators
from deepreport.services.logger import log_event
from deepreport.services.pipeline import AgentPipeline, PipelineResult, mint_candidates
from deepreport.tools import document_extractor, web_utils

Listener = Callable[[SSEEvent], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ResearchSession:
    """One user's working set: candidates, selection, prompt, report and run status.

    Runs are tagged with a monotonically increasing id. A run whose id is no
    longer current when it finishes (the session was cleared or a newer run
    started) has its output dropped.
    """

    def __init__(
        self,
        collaborators: Collaborators | None = None,
        *,
        session_id: str | None = None,
        model_id: str | None = None,
        time_filter: str | None = None,
        max_selections: int | None = None,
        min_score: float | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.collaborators = collaborators or Collaborators.default()
        self.model_id = model_id or settings.default_model
        self.time_filter = time_filter or settings.search_default_time_filter
        self.max_selections = max_selections if max_selections is not None else settings.max_selectable_results
        self.min_score = min_score if min_score is not None else settings.min_source_score
        self.max_attempts = max_attempts if max_attempts is not None else settings.backoff_max_attempts
        self.base_delay = base_delay if base_delay is not None else settings.backoff_base_delay_seconds

        self.candidates: list[SearchCandidate] = []
        self.selected_ids: list[str] = []
        self.report_prompt = ""
        self.report: Report | None = None
        self.status = PipelineStatus()

        self._run_counter = 0
        self._active_run_id: int | None = None
        self._local_ids = itertools.count(1)
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()

    # -- observation -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: SSEEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.warning(f"Session {self.id}: listener failed on {event.event.value}: {exc}")

    def snapshot(self) -> StatusSnapshot:
        return self.status.snapshot()

    @property
    def current_run_id(self) -> int:
        return self._run_counter

    @property
    def is_busy(self) -> bool:
        return self._active_run_id is not None

    @property
    def selected_candidates(self) -> list[SearchCandidate]:
        by_id = {c.id: c for c in self.candidates}
        return [by_id[cid] for cid in self.selected_ids if cid in by_id]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "model_id": self.model_id,
            "time_filter": self.time_filter,
            "candidates": [c.to_dict() for c in self.candidates],
            "selected_ids": list(self.selected_ids),
            "report_prompt": self.report_prompt,
            "report": self.report.to_dict() if self.report else None,
            "status": self.snapshot().to_dict(),
        }

    # -- candidates & selection -------------------------------------------

    def _find(self, candidate_id: str) -> SearchCandidate:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        raise InvalidInputError(f"Unknown source: {candidate_id}")

    def merge_candidates(self, fresh: list[SearchCandidate]) -> None:
        """Replace search results, keeping custom and selected candidates.

        Fresh results whose URL is already present are skipped, so merging the
        same results twice leaves the URL set unchanged.
        """
        selected = set(self.selected_ids)
        merged = [c for c in self.candidates if c.is_custom or c.id in selected]
        seen = {c.url for c in merged}
        for candidate in fresh:
            if candidate.url in seen:
                continue
            seen.add(candidate.url)
            merged.append(candidate)
        self.candidates = merged

    def set_selected(self, candidate_id: str, selected: bool) -> bool:
        """Select or deselect one candidate. Returns whether it is now selected.

        Selecting beyond ``max_selections`` is refused and leaves the
        selection unchanged.
        """
        candidate = self._find(candidate_id)
        if selected and candidate_id not in self.selected_ids:
            if len(self.selected_ids) >= self.max_selections:
                logger.info(f"Session {self.id}: selection cap {self.max_selections} reached, ignoring {candidate.url}")
                return False
            self.selected_ids.append(candidate_id)
        elif not selected and candidate_id in self.selected_ids:
            self.selected_ids.remove(candidate_id)

        if selected and len(self.selected_ids) == 1 and not self.report_prompt.strip():
            only = self.selected_candidates[0]
            self.report_prompt = f"Summarize key points of {only.name}"
        return candidate_id in self.selected_ids

    def toggle_selection(self, candidate_id: str) -> bool:
        return self.set_selected(candidate_id, candidate_id not in self.selected_ids)

    def add_custom_url(self, url: str) -> SearchCandidate:
        url = (url or "").strip()
        if not web_utils.is_valid_url(url):
            raise InvalidInputError("Please enter a valid URL starting with http:// or https://")
        for candidate in self.candidates:
            if candidate.url == url:
                return candidate

        candidate = SearchCandidate(
            id=f"custom-{_now_ms()}-{next(self._local_ids)}",
            url=url,
            name=web_utils.extract_domain(url) or url,
            snippet="Custom URL added by user",
            is_custom=True,
        )
        self.candidates.insert(0, candidate)
        log_event("custom_url_added", url, session_id=self.id)
        return candidate

    async def upload_file(self, filename: str, data: bytes) -> SearchCandidate:
        filename = (filename or "").strip()
        if not filename:
            raise InvalidInputError("No file provided")
        if len(data) > settings.upload_max_bytes:
            raise InvalidInputError(
                f"File too large ({len(data)} bytes, limit {settings.upload_max_bytes})"
            )
        if not document_extractor.is_supported(filename):
            supported = ", ".join(sorted(document_extractor.SUPPORTED_EXTENSIONS))
            raise InvalidInputError(f"Unsupported file type. Supported: {supported}")

        content = await asyncio.to_thread(self.collaborators.extract_document, filename, data)

        url = f"file://{filename}"
        snippet = content[:200] + ("..." if len(content) > 200 else "")
        for candidate in self.candidates:
            if candidate.url == url:
                candidate.content = content
                candidate.snippet = snippet
                return candidate

        candidate = SearchCandidate(
            id=f"file-{_now_ms()}-{next(self._local_ids)}",
            url=url,
            name=filename,
            snippet=snippet,
            content=content,
            is_custom=True,
        )
        self.candidates.insert(0, candidate)
        log_event("file_uploaded", filename, session_id=self.id, chars=len(content))
        return candidate

    async def start_manual_search(self, query: str, time_filter: str | None = None) -> list[SearchCandidate]:
        query = (query or "").strip()
        if not query:
            raise InvalidInputError("Please enter a search query")
        time_filter = time_filter or self.time_filter
        if time_filter not in TIME_FILTERS:
            raise InvalidInputError(
                f"Unknown time filter '{time_filter}'. Use one of: {', '.join(TIME_FILTERS)}"
            )
        self.time_filter = time_filter

        results = await execute_with_backoff(
            lambda: self.collaborators.search(query, time_filter),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            label="search",
        )
        fresh = mint_candidates(results)
        if not fresh:
            raise EmptyResultError(f'No results found for "{query}". Try a different query or time filter.')
        self.merge_candidates(fresh)
        log_event("manual_search", query, session_id=self.id, results=len(fresh))
        return list(self.candidates)

    def clear(self) -> None:
        """Drop everything and invalidate any in-flight run."""
        self._run_counter += 1
        self._active_run_id = None
        self.status = PipelineStatus(run_id=self._run_counter)
        self.candidates = []
        self.selected_ids = []
        self.report_prompt = ""
        self.report = None
        log_event("session_cleared", self.id, run_id=self._run_counter)

    # -- runs -------------------------------------------------------------

    def _begin_run(self) -> PipelineStatus:
        if self.is_busy or self.status.is_active:
            raise RunInProgressError()
        self._run_counter += 1
        self._active_run_id = self._run_counter
        self.status = PipelineStatus(run_id=self._run_counter)
        self.report = None
        return self.status

    def _end_run(self, run_id: int) -> None:
        if self._active_run_id == run_id:
            self._active_run_id = None

    def _pipeline(self, status: PipelineStatus) -> AgentPipeline:
        run_id = status.run_id

        def notify(event: SSEEvent) -> None:
            if run_id == self._run_counter:
                self._publish(event)

        return AgentPipeline(
            self.collaborators,
            status,
            model_id=self.model_id,
            time_filter=self.time_filter,
            max_selections=self.max_selections,
            min_score=self.min_score,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            notify=notify,
        )

    def _commit(self, run_id: int, result: PipelineResult | None) -> Report | None:
        if run_id != self._run_counter:
            logger.info(f"Session {self.id}: discarding output of stale run {run_id}")
            return None
        if result is None:
            return None

        if result.candidates is not None:
            self.merge_candidates(result.candidates)
            by_url = {c.url: c.id for c in self.candidates}
            self.selected_ids = [by_url[c.url] for c in result.selected if c.url in by_url]
            self.report_prompt = result.prompt
        self.report = result.report
        return self.report

    async def generate_report(self, prompt: str | None = None) -> Report | None:
        """Manual flow: synthesize a report from the current selection.

        Returns None when the run failed (see ``status.error``) or was
        discarded.
        """
        prompt = (prompt if prompt is not None else self.report_prompt).strip()
        selected = self.selected_candidates
        if not selected:
            raise InvalidInputError("Select at least one source")
        if not prompt:
            raise InvalidInputError("Please enter a prompt for the report")
        status = self._begin_run()
        self.report_prompt = prompt

        try:
            result = await self._pipeline(status).generate(prompt, list(selected))
        finally:
            self._end_run(status.run_id)
        return self._commit(status.run_id, result)

    def _begin_agent_run(self, prompt: str) -> tuple[PipelineStatus, str]:
        prompt = (prompt or "").strip()
        if not prompt:
            raise InvalidInputError("Please enter a research prompt")
        return self._begin_run(), prompt

    async def _execute_agent_run(self, status: PipelineStatus, prompt: str) -> Report | None:
        try:
            result = await self._pipeline(status).run(prompt)
        finally:
            self._end_run(status.run_id)
        return self._commit(status.run_id, result)

    async def start_agent_run(self, prompt: str) -> Report | None:
        """Run the full agent pipeline and wait for it."""
        status, prompt = self._begin_agent_run(prompt)
        return await self._execute_agent_run(status, prompt)

    def launch_agent_run(self, prompt: str) -> int:
        """Start an agent run in the background and return its run id.

        Validation and the one-run-at-a-time check happen before this returns.
        """
        status, prompt = self._begin_agent_run(prompt)
        task = asyncio.create_task(self._execute_agent_run(status, prompt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return status.run_id
