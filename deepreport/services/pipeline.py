from __future__ import annotations

import asyncio
import dataclasses
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from deepreport.errors import EmptyResultError, ErrorCategory, ResearchError
from deepreport.models.events import SSEEvent
from deepreport.models.research import (
    FetchState,
    PipelineStatus,
    Report,
    ResolvedSource,
    SearchCandidate,
    Stage,
)
from deepreport.services import logger as log_service
from deepreport.services import streaming
from deepreport.services.backoff import execute_with_backoff
from deepreport.services.collaborators import Collaborators
from deepreport.services.content_resolver import ContentResolver
from deepreport.services.diversity import rank_candidates, select_diverse, unique_domains
from deepreport.services.fetch_tracker import FetchTracker
from deepreport.tools.tavily_search import SearchResult

T = TypeVar("T")


@dataclass
class PipelineResult:
    report: Report
    prompt: str
    selected: list[SearchCandidate]
    # None for the manual flow, which never searches
    candidates: list[SearchCandidate] | None = None


def mint_candidates(results: list[SearchResult], *, timestamp_ms: int | None = None) -> list[SearchCandidate]:
    """Give each result of one search response a run-unique id."""
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return [
        SearchCandidate(
            id=f"search-{stamp}-{idx}-{result.url}",
            url=result.url,
            name=result.title or result.url,
            snippet=result.content,
        )
        for idx, result in enumerate(results)
    ]


class AgentPipeline:
    """Sequences optimize -> search -> analyze -> select -> resolve -> synthesize.

    Progress is written to the run's ``PipelineStatus`` through its transition
    table; every transition appends an insight and is published as an event.
    Failures end the run in the ``error`` stage instead of escaping.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        status: PipelineStatus,
        *,
        model_id: str,
        time_filter: str = "all",
        max_selections: int = 3,
        min_score: float = 0.5,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        notify: Callable[[SSEEvent], None] | None = None,
    ):
        self.collaborators = collaborators
        self.status = status
        self.model_id = model_id
        self.time_filter = time_filter
        self.max_selections = max_selections
        self.min_score = min_score
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._notify = notify

    @property
    def run_id(self) -> int:
        return self.status.run_id

    def _emit(self, event: SSEEvent) -> None:
        if self._notify is not None:
            self._notify(event)

    def _note(self, insight: str) -> None:
        self.status.add_insight(insight)
        self._emit(streaming.insight(self.run_id, insight))

    def _advance(self, stage: Stage, insight: str | None = None) -> None:
        self.status.transition(stage, insight)
        log_service.log_pipeline_step(self.run_id, stage.value, "entered", {"insight": insight})
        self._emit(streaming.stage_changed(self.run_id, stage.value))
        if insight:
            self._emit(streaming.insight(self.run_id, insight))

    def _fail(self, category: ErrorCategory, message: str) -> None:
        self.status.fail(category, message)
        log_service.log_pipeline_step(self.run_id, Stage.ERROR.value, "error", {"category": category.value, "message": message})
        self._emit(streaming.error(self.run_id, category.value, message))

    def _cancelled(self) -> None:
        # A cancelled task must not leave the status in a working stage.
        if self.status.is_active:
            logger.warning(f"Run {self.run_id} cancelled during {self.status.stage.value}")
            self._fail(ErrorCategory.UPSTREAM_FAILURE, "Run cancelled")

    async def _call(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await execute_with_backoff(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            label=label,
        )

    async def run(self, prompt: str) -> PipelineResult | None:
        """Full agent run. Returns None when the run ended in ``error``."""
        self._emit(streaming.run_started(self.run_id, "agent", prompt))
        try:
            return await self._run(prompt)
        except asyncio.CancelledError:
            self._cancelled()
            raise
        except ResearchError as exc:
            self._fail(exc.category, exc.message)
        except Exception as exc:
            logger.exception(f"Agent run {self.run_id} failed unexpectedly: {exc}")
            self._fail(ErrorCategory.UPSTREAM_FAILURE, f"Research failed unexpectedly: {exc}")
        return None

    async def _run(self, prompt: str) -> PipelineResult:
        self._advance(Stage.PROCESSING, "Optimizing research query...")
        optimized = await self._call(
            "query optimizer",
            lambda: self.collaborators.optimize_query(prompt, self.model_id),
        )
        if optimized.explanation:
            self._note(f"Research strategy: {optimized.explanation}")

        query = optimized.query
        self.status.queries.append(query)
        self._advance(Stage.SEARCHING, f'Searching for "{query}"...')
        results = await self._call(
            "search",
            lambda: self.collaborators.search(query, self.time_filter),
        )
        candidates = mint_candidates(results)
        self._emit(streaming.search_result(self.run_id, query, candidates))
        if not candidates:
            raise EmptyResultError(f'No search results found for "{query}". Try rephrasing the research prompt.')

        self._advance(Stage.ANALYZING, f"Found {len(candidates)} results, analyzing relevance...")
        analysis = await self._call(
            "result analyzer",
            lambda: self.collaborators.analyze_results(optimized.optimized_prompt, candidates, self.model_id),
        )
        ranked = rank_candidates(
            [dataclasses.replace(c, score=analysis.score_for(c.url)) for c in candidates]
        )
        self._note(f"Ranked {len(ranked)} results by relevance")
        if analysis.analysis:
            self._note(f"Analysis: {analysis.analysis}")

        selected = select_diverse(ranked, self.max_selections, min_score=self.min_score)
        if not selected:
            raise EmptyResultError(
                f"No results scored above {self.min_score} on distinct domains. "
                "Try a broader research prompt."
            )
        self._emit(streaming.sources_selected(self.run_id, selected))
        domains = unique_domains(selected)
        self._advance(
            Stage.GENERATING,
            f"Selected {len(selected)} sources from {len(domains)} unique domains: {', '.join(domains)}",
        )

        report_prompt = optimized.optimized_prompt
        if optimized.suggested_structure:
            outline = "\n".join(f"- {item}" for item in optimized.suggested_structure)
            report_prompt = f"{report_prompt}\n\nSuggested structure:\n{outline}"

        report = await self._generate(report_prompt, selected)
        return PipelineResult(report=report, prompt=report_prompt, selected=selected, candidates=ranked)

    async def generate(self, prompt: str, selected: list[SearchCandidate]) -> PipelineResult | None:
        """Manual flow: resolve the user's selection and synthesize directly."""
        self._emit(streaming.run_started(self.run_id, "manual", prompt))
        try:
            self._advance(Stage.GENERATING, f"Generating report from {len(selected)} selected sources...")
            report = await self._generate(prompt, selected)
        except asyncio.CancelledError:
            self._cancelled()
            raise
        except ResearchError as exc:
            self._fail(exc.category, exc.message)
            return None
        except Exception as exc:
            logger.exception(f"Report run {self.run_id} failed unexpectedly: {exc}")
            self._fail(ErrorCategory.UPSTREAM_FAILURE, f"Report generation failed unexpectedly: {exc}")
            return None
        return PipelineResult(report=report, prompt=prompt, selected=list(selected))

    async def _generate(self, prompt: str, selected: list[SearchCandidate]) -> Report:
        tracker = FetchTracker(total=len(selected))
        self.status.fetch_tracker = tracker

        def on_resolved(source: ResolvedSource, state: FetchState) -> None:
            self._emit(
                streaming.source_resolved(
                    self.run_id, source, state.value, completed=tracker.completed, total=tracker.total
                )
            )

        resolver = ContentResolver(
            self.collaborators.fetch_content,
            tracker,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            on_resolved=on_resolved,
        )
        self._note(f"Fetching content from {len(selected)} sources...")
        resolved = await resolver.resolve_all(selected)

        fetch_status = tracker.snapshot()
        message = f"Retrieved full content for {fetch_status.successful} of {fetch_status.total} sources"
        if fetch_status.fallback:
            message += f" ({fetch_status.fallback} using search previews)"
        self._note(message)

        self._note("Generating report...")
        report = await self._call(
            "report synthesizer",
            lambda: self.collaborators.synthesize_report(resolved, selected, prompt, self.model_id),
        )

        self._advance(Stage.IDLE, f'Report ready: "{report.title}"')
        self._emit(streaming.report_ready(self.run_id, report, fetch_status.to_dict()))
        return report
