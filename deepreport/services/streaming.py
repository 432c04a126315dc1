from __future__ import annotations

from typing import Any

from deepreport.models.events import EventType, SSEEvent
from deepreport.models.research import Report, ResolvedSource, SearchCandidate


def run_started(run_id: int, mode: str, prompt: str) -> SSEEvent:
    return SSEEvent(
        event=EventType.RUN_STARTED,
        data={"run_id": run_id, "mode": mode, "prompt": prompt},
    )


def stage_changed(run_id: int, stage: str) -> SSEEvent:
    return SSEEvent(event=EventType.STAGE_CHANGED, data={"run_id": run_id, "stage": stage})


def insight(run_id: int, message: str) -> SSEEvent:
    return SSEEvent(event=EventType.INSIGHT, data={"run_id": run_id, "message": message})


def search_result(run_id: int, query: str, candidates: list[SearchCandidate]) -> SSEEvent:
    return SSEEvent(
        event=EventType.SEARCH_RESULT,
        data={
            "run_id": run_id,
            "query": query,
            "results": [
                {"id": c.id, "url": c.url, "name": c.name, "snippet": c.snippet}
                for c in candidates
            ],
        },
    )


def sources_selected(run_id: int, candidates: list[SearchCandidate]) -> SSEEvent:
    return SSEEvent(
        event=EventType.SOURCES_SELECTED,
        data={
            "run_id": run_id,
            "sources": [{"id": c.id, "url": c.url, "score": c.score} for c in candidates],
        },
    )


def source_resolved(
    run_id: int, source: ResolvedSource, state: str, *, completed: int = 0, total: int = 0
) -> SSEEvent:
    return SSEEvent(
        event=EventType.SOURCE_RESOLVED,
        data={
            "run_id": run_id,
            "url": source.url,
            "state": state,
            "completed": completed,
            "total": total,
            "content_preview": source.content[:500],
        },
    )


def report_ready(run_id: int, report: Report, fetch_status: dict[str, Any]) -> SSEEvent:
    return SSEEvent(
        event=EventType.REPORT_READY,
        data={"run_id": run_id, "report": report.to_dict(), "fetch_status": fetch_status},
    )


def error(run_id: int, category: str, message: str) -> SSEEvent:
    return SSEEvent(
        event=EventType.ERROR,
        data={"run_id": run_id, "category": category, "message": message},
    )
