from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from deepreport.errors import ErrorCategory, InvalidTransitionError

if TYPE_CHECKING:
    from deepreport.services.fetch_tracker import FetchTracker


TIME_FILTERS = ("all", "24h", "week", "month", "year")


@dataclass
class SearchCandidate:
    """A discovered or user-added source under consideration for a report."""

    id: str
    url: str
    name: str
    snippet: str = ""
    content: str | None = None
    score: float = 0.0
    is_custom: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "snippet": self.snippet,
            "content": self.content,
            "score": self.score,
            "is_custom": self.is_custom,
        }


class FetchState(str, Enum):
    FETCHED = "fetched"
    PREVIEW = "preview"


@dataclass(frozen=True)
class FetchStatus:
    total: int = 0
    successful: int = 0
    fallback: int = 0
    sources: Mapping[str, FetchState] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "fallback": self.fallback,
            "sources": {url: state.value for url, state in self.sources.items()},
        }


@dataclass(frozen=True, slots=True)
class ResolvedSource:
    url: str
    title: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "title": self.title, "content": self.content}


@dataclass(slots=True)
class OptimizedQuery:
    query: str
    optimized_prompt: str
    explanation: str = ""
    suggested_structure: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Ranking:
    url: str
    score: float


@dataclass(slots=True)
class Analysis:
    rankings: list[Ranking] = field(default_factory=list)
    analysis: str = ""

    def score_for(self, url: str) -> float:
        for ranking in self.rankings:
            if ranking.url == url:
                return ranking.score
        return 0.0


@dataclass(slots=True)
class FetchedContent:
    content: str


@dataclass
class ReportSection:
    title: str
    content: str


@dataclass
class Report:
    title: str
    summary: str
    sections: list[ReportSection] = field(default_factory=list)
    sources: list[SearchCandidate] = field(default_factory=list)
    used_sources: list[int] = field(default_factory=list)
    prompt: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "sections": [{"title": s.title, "content": s.content} for s in self.sections],
            "sources": [{"id": s.id, "url": s.url, "name": s.name} for s in self.sources],
            "used_sources": list(self.used_sources),
            "prompt": self.prompt,
        }

    def to_markdown(self) -> str:
        lines = [f"# {self.title}", "", self.summary, ""]
        for section in self.sections:
            lines.extend([f"## {section.title}", "", section.content, ""])
        if self.sources:
            lines.append("## Sources")
            lines.append("")
            for idx, source in enumerate(self.sources, 1):
                lines.append(f"{idx}. [{source.name}]({source.url})")
        return "\n".join(lines).rstrip() + "\n"


class Stage(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    ERROR = "error"


# idle/error are the resting states; processing starts an agent run and
# generating (from rest) is the manual flow jumping straight to synthesis.
TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.IDLE: frozenset({Stage.PROCESSING, Stage.GENERATING}),
    Stage.ERROR: frozenset({Stage.PROCESSING, Stage.GENERATING}),
    Stage.PROCESSING: frozenset({Stage.SEARCHING, Stage.ERROR}),
    Stage.SEARCHING: frozenset({Stage.ANALYZING, Stage.ERROR}),
    Stage.ANALYZING: frozenset({Stage.GENERATING, Stage.ERROR}),
    Stage.GENERATING: frozenset({Stage.IDLE, Stage.ERROR}),
}

RESTING_STAGES = frozenset({Stage.IDLE, Stage.ERROR})


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    category: ErrorCategory
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category.value, "message": self.message}


@dataclass(frozen=True)
class StatusSnapshot:
    run_id: int
    stage: Stage
    insights: tuple[str, ...]
    queries: tuple[str, ...]
    fetch_status: FetchStatus
    error: ErrorInfo | None

    @property
    def is_active(self) -> bool:
        return self.stage not in RESTING_STAGES

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stage": self.stage.value,
            "is_active": self.is_active,
            "insights": list(self.insights),
            "queries": list(self.queries),
            "fetch_status": self.fetch_status.to_dict(),
            "error": self.error.to_dict() if self.error else None,
        }


class PipelineStatus:
    """Observable progress of one run, guarded by the transition table."""

    def __init__(self, run_id: int = 0):
        self.run_id = run_id
        self.stage = Stage.IDLE
        self.insights: list[str] = []
        self.queries: list[str] = []
        self.error: ErrorInfo | None = None
        self.fetch_tracker: FetchTracker | None = None

    @property
    def is_active(self) -> bool:
        return self.stage not in RESTING_STAGES

    def can_transition(self, target: Stage) -> bool:
        return target in TRANSITIONS.get(self.stage, frozenset())

    def transition(self, target: Stage, insight: str | None = None) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self.stage.value, target.value)
        self.stage = target
        if insight:
            self.insights.append(insight)

    def add_insight(self, insight: str) -> None:
        self.insights.append(insight)

    def fail(self, category: ErrorCategory, message: str) -> None:
        self.error = ErrorInfo(category=category, message=message)
        self.transition(Stage.ERROR, f"Error: {message}")

    def snapshot(self) -> StatusSnapshot:
        fetch_status = self.fetch_tracker.snapshot() if self.fetch_tracker else FetchStatus()
        return StatusSnapshot(
            run_id=self.run_id,
            stage=self.stage,
            insights=tuple(self.insights),
            queries=tuple(self.queries),
            fetch_status=fetch_status,
            error=self.error,
        )
