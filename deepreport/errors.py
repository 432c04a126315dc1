"""Error taxonomy shared by the pipeline, the collaborators and the HTTP layer.

Every surfaced failure carries a machine-checkable ``category`` plus a
human-readable message so callers can catch the whole family with one
``except ResearchError`` clause.
"""

from __future__ import annotations

from enum import Enum

import httpx


class ErrorCategory(str, Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    EMPTY_RESULT = "empty_result"
    UPSTREAM_FAILURE = "upstream_failure"
    VALIDATION = "validation_error"
    RUN_IN_PROGRESS = "run_in_progress"


class ResearchError(Exception):
    category: ErrorCategory = ErrorCategory.UPSTREAM_FAILURE
    default_message: str = "Research request failed"

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class RateLimitedError(ResearchError):
    """Upstream asked us to slow down (HTTP 429). The only retried failure."""

    category = ErrorCategory.RATE_LIMITED
    default_message = "Too many requests. Please wait a moment and try again."

    def __init__(self, message: str = "", *, status_code: int | None = 429) -> None:
        super().__init__(message, status_code=status_code)


class QuotaExceededError(ResearchError):
    category = ErrorCategory.QUOTA_EXCEEDED
    default_message = (
        "The upstream quota is exhausted. Check the API key's plan or try again later."
    )

    def __init__(self, message: str = "", *, status_code: int | None = 403) -> None:
        super().__init__(message, status_code=status_code)


class EmptyResultError(ResearchError):
    category = ErrorCategory.EMPTY_RESULT
    default_message = "No results found. Try a different query or time filter."


class UpstreamError(ResearchError):
    category = ErrorCategory.UPSTREAM_FAILURE
    default_message = "An upstream service failed. Please try again."


class InvalidInputError(ResearchError):
    category = ErrorCategory.VALIDATION
    default_message = "Invalid input."


class RunInProgressError(ResearchError):
    category = ErrorCategory.RUN_IN_PROGRESS
    default_message = "A research run is already in progress for this session."


class InvalidTransitionError(RuntimeError):
    """Raised when the pipeline state machine is asked for an illegal move."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid pipeline transition: {current} -> {target}")
        self.current = current
        self.target = target


def from_status(status_code: int, message: str = "", *, service: str = "") -> ResearchError:
    """Map an HTTP-like status code from a collaborator onto the taxonomy."""
    text = f"{service}: {message}" if service and message else message
    if status_code == 429:
        return RateLimitedError(text)
    if status_code == 403:
        return QuotaExceededError(text)
    return UpstreamError(text, status_code=status_code)


def from_http_error(exc: httpx.HTTPError, *, service: str) -> ResearchError:
    """Translate an httpx failure into a ResearchError."""
    if isinstance(exc, httpx.HTTPStatusError):
        message = ""
        try:
            payload = exc.response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            raw = payload.get("error") or payload.get("message") or payload.get("detail")
            if isinstance(raw, dict):
                raw = raw.get("message")
            if isinstance(raw, str):
                message = raw
        return from_status(exc.response.status_code, message, service=service)
    return UpstreamError(f"{service}: {exc}" if str(exc) else f"{service} request failed")
