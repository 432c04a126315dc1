from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

from deepreport.config import settings
from deepreport.services.collaborators import Collaborators
from deepreport.services.session import ResearchSession


def get_available_models() -> list[dict[str, str]]:
    """Return the configured OpenRouter model catalog."""
    return [
        {
            "id": model_id,
            "name": label,
            "description": "Default model" if model_id == settings.default_model else "",
        }
        for model_id, label in settings.model_list
    ]


class SessionRegistry:
    """In-memory research sessions keyed by id."""

    def __init__(self, collaborators_factory: Callable[[], Collaborators] = Collaborators.default):
        self.collaborators_factory = collaborators_factory
        self._sessions: dict[str, ResearchSession] = {}

    def create(self, *, model_id: str | None = None, time_filter: str | None = None) -> ResearchSession:
        session = ResearchSession(
            self.collaborators_factory(),
            model_id=model_id,
            time_filter=time_filter,
        )
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> ResearchSession | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


registry = SessionRegistry()


def get_session(session_id: str) -> ResearchSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session
