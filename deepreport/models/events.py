from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    RUN_STARTED = "run_started"
    STAGE_CHANGED = "stage_changed"
    INSIGHT = "insight"
    SEARCH_RESULT = "search_result"
    SOURCES_SELECTED = "sources_selected"
    SOURCE_RESOLVED = "source_resolved"
    REPORT_READY = "report_ready"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.REPORT_READY, EventType.ERROR})


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS
