from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Depends, File, UploadFile
from sse_starlette.sse import EventSourceResponse

from deepreport.api.deps import get_session, registry
from deepreport.errors import InvalidInputError
from deepreport.models.events import SSEEvent
from deepreport.models.research import TIME_FILTERS
from deepreport.models.schemas import (
    AgentRequest,
    AgentStartResponse,
    CandidateResponse,
    CreateSessionRequest,
    CustomUrlRequest,
    ReportRequest,
    SearchRequest,
    SelectionRequest,
    SelectionResponse,
    SessionStateResponse,
)
from deepreport.services import logger as log_service
from deepreport.services.rate_limiter import rate_limiter
from deepreport.services.session import ResearchSession

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionStateResponse)
async def create_session(request: CreateSessionRequest | None = None):
    request = request or CreateSessionRequest()
    if request.time_filter and request.time_filter not in TIME_FILTERS:
        raise InvalidInputError(f"Unknown time filter '{request.time_filter}'")
    session = registry.create(model_id=request.model, time_filter=request.time_filter)
    log_service.log_event("session_created", session.id, model=session.model_id)
    return session.to_dict()


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session_state(session: ResearchSession = Depends(get_session)):
    return session.to_dict()


@router.delete("/{session_id}", response_model=SessionStateResponse)
async def clear_session(drop: bool = False, session: ResearchSession = Depends(get_session)):
    """Clear the session's working set and invalidate any in-flight run.

    With ``?drop=true`` the session is also removed from the registry and its
    id stops resolving.
    """
    session.clear()
    if drop:
        registry.remove(session.id)
        log_service.log_event("session_dropped", session.id)
    return session.to_dict()


@router.post("/{session_id}/search", response_model=list[CandidateResponse])
async def search(request: SearchRequest, session: ResearchSession = Depends(get_session)):
    rate_limiter.check("search", session.id)
    candidates = await session.start_manual_search(request.query, request.time_filter)
    return [c.to_dict() for c in candidates]


@router.post("/{session_id}/selection/{candidate_id:path}", response_model=SelectionResponse)
async def toggle_selection(
    candidate_id: str,
    request: SelectionRequest | None = None,
    session: ResearchSession = Depends(get_session),
):
    if request is None or request.selected is None:
        selected = session.toggle_selection(candidate_id)
    else:
        selected = session.set_selected(candidate_id, request.selected)
    return SelectionResponse(
        candidate_id=candidate_id,
        selected=selected,
        selected_ids=list(session.selected_ids),
        report_prompt=session.report_prompt,
    )


@router.post("/{session_id}/urls", response_model=CandidateResponse)
async def add_custom_url(request: CustomUrlRequest, session: ResearchSession = Depends(get_session)):
    rate_limiter.check("content_fetch", session.id)
    return session.add_custom_url(request.url).to_dict()


@router.post("/{session_id}/uploads", response_model=CandidateResponse)
async def upload_file(file: UploadFile = File(...), session: ResearchSession = Depends(get_session)):
    rate_limiter.check("content_fetch", session.id)
    data = await file.read()
    candidate = await session.upload_file(file.filename or "", data)
    return candidate.to_dict()


@router.post("/{session_id}/report", response_model=SessionStateResponse)
async def generate_report(
    request: ReportRequest | None = None,
    session: ResearchSession = Depends(get_session),
):
    """Synthesize a report from the selected sources and wait for it.

    A failed run still returns 200; the error is in ``status.error``.
    """
    rate_limiter.check("report_generation", session.id)
    await session.generate_report(request.prompt if request else None)
    return session.to_dict()


@router.post("/{session_id}/agent", response_model=AgentStartResponse)
async def start_agent(request: AgentRequest, session: ResearchSession = Depends(get_session)):
    """Start an agent run in the background; follow it via /status or /stream."""
    rate_limiter.check("agent_optimizations", session.id)
    run_id = session.launch_agent_run(request.prompt)
    log_service.log_event("agent_run_started", request.prompt[:100], session_id=session.id, run_id=run_id)
    return AgentStartResponse(session_id=session.id, run_id=run_id)


@router.get("/{session_id}/status")
async def get_status(session: ResearchSession = Depends(get_session)):
    return session.snapshot().to_dict()


@router.get("/{session_id}/stream")
async def stream_session(session: ResearchSession = Depends(get_session)):
    """SSE stream of the session's run events, closed after a terminal event."""
    queue: asyncio.Queue[SSEEvent] = asyncio.Queue()
    unsubscribe = session.subscribe(queue.put_nowait)

    async def event_generator():
        try:
            yield {"event": "status", "data": json.dumps(session.snapshot().to_dict())}
            while True:
                event = await queue.get()
                yield {"event": event.event.value, "data": json.dumps(event.data)}
                if event.is_terminal:
                    break
        finally:
            unsubscribe()

    return EventSourceResponse(event_generator())
