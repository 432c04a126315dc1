from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# --- Requests ---


class CreateSessionRequest(BaseModel):
    model: str | None = None
    time_filter: str | None = None


class SearchRequest(BaseModel):
    query: str
    time_filter: str | None = None


class SelectionRequest(BaseModel):
    # omitted: toggle
    selected: bool | None = None


class CustomUrlRequest(BaseModel):
    url: str


class ReportRequest(BaseModel):
    prompt: str | None = None


class AgentRequest(BaseModel):
    prompt: str


# --- Responses ---


class CandidateResponse(BaseModel):
    id: str
    url: str
    name: str
    snippet: str = ""
    content: str | None = None
    score: float = 0.0
    is_custom: bool = False


class SessionStateResponse(BaseModel):
    id: str
    model_id: str
    time_filter: str
    candidates: list[CandidateResponse] = Field(default_factory=list)
    selected_ids: list[str] = Field(default_factory=list)
    report_prompt: str = ""
    report: dict[str, Any] | None = None
    status: dict[str, Any]


class SelectionResponse(BaseModel):
    candidate_id: str
    selected: bool
    selected_ids: list[str]
    report_prompt: str


class AgentStartResponse(BaseModel):
    session_id: str
    run_id: int


class ErrorResponse(BaseModel):
    category: str
    message: str


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str = ""


class ModelsResponse(BaseModel):
    models: list[ModelInfo]
