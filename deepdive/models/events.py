from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    STATUS = "status"
    SUMMARY_CHUNK = "summary_chunk"
    SUMMARY_COMPLETE = "summary_complete"
    CREDIBILITY_CHUNK = "credibility_chunk"
    CREDIBILITY_COMPLETE = "credibility_complete"
    FACT_CHECK_COMPLETE = "fact_check_complete"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.COMPLETE, EventType.ERROR})


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def payload(self) -> dict[str, Any]:
        return {"type": self.event.value, **self.data}

    def to_json(self) -> str:
        return json.dumps(self.payload())

    def format(self) -> str:
        return f"data: {self.to_json()}\n\n"
