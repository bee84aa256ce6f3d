from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class ArticleMemoryEntry:
    url: str
    analyzed_at: str
    title: str | None = None
    author: str | None = None
    source: str | None = None
    published_at: str | None = None
    summary: str = ""
    bullets: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    credibility_score: float | None = None
    credibility_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Connection:
    url: str
    reason: str
    strength: int


@dataclass(slots=True)
class MemoryUpdateSummary:
    url: str
    topics: list[str] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    topic_buckets_touched: int = 0
