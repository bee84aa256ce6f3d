from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone

from loguru import logger

from deepdive.agents.base import attempt
from deepdive.agents.connection_agent import ConnectionAgent
from deepdive.agents.topic_agent import TopicAgent
from deepdive.config import settings
from deepdive.errors import ProviderUnavailable
from deepdive.models.memory import ArticleMemoryEntry, Connection, MemoryUpdateSummary
from deepdive.models.schemas import AnalysisResult, SourceMetadata
from deepdive.services import logger as log_service
from deepdive.services.analysis_cache import cache_key
from deepdive.services.locks import KeyedLocks

SAME_AUTHOR_BONUS = 2


def connection_strength(shared_topic_count: int, same_author: bool) -> int:
    return shared_topic_count + (SAME_AUTHOR_BONUS if same_author else 0)


class ArticleMemoryIndex:
    """Analyzed articles, the topic index and per-article connection sets.

    Connections are recomputed from scratch on every ``record_article`` by
    comparing against the most recent ``candidate_window`` entries only.
    """

    def __init__(
        self,
        topic_agent: TopicAgent | None = None,
        connection_agent: ConnectionAgent | None = None,
        *,
        candidate_window: int | None = None,
        max_connections: int | None = None,
        max_parallel: int = 4,
    ):
        self.topic_agent = topic_agent if topic_agent is not None else TopicAgent()
        self.connection_agent = connection_agent if connection_agent is not None else ConnectionAgent()
        self.candidate_window = candidate_window or settings.memory_candidate_window
        self.max_connections = max_connections or settings.memory_max_connections
        self.max_parallel = max(max_parallel, 1)
        self._entries: dict[str, ArticleMemoryEntry] = {}
        self._recency: dict[str, int] = {}
        self._sequence = itertools.count()
        self._topic_index: dict[str, list[str]] = {}
        self._connections: dict[str, list[Connection]] = {}
        self._locks = KeyedLocks()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, url: str) -> ArticleMemoryEntry | None:
        return self._entries.get(url)

    def topic_articles(self, topic: str) -> list[str]:
        return list(self._topic_index.get(topic, []))

    def _recent_entries(self) -> list[ArticleMemoryEntry]:
        return sorted(
            self._entries.values(),
            key=lambda e: (e.analyzed_at, self._recency.get(e.url, 0)),
            reverse=True,
        )

    def history(self, limit: int | None = None) -> tuple[list[ArticleMemoryEntry], int]:
        limit = settings.history_limit if limit is None else min(limit, settings.history_limit)
        return self._recent_entries()[: max(limit, 0)], len(self._entries)

    def has_article_key(self, key: str) -> bool:
        return key in self._connections

    def connections(self, key: str) -> list[tuple[Connection, ArticleMemoryEntry]]:
        joined: list[tuple[Connection, ArticleMemoryEntry]] = []
        for connection in self._connections.get(key, []):
            entry = self._entries.get(connection.url)
            if entry is not None:
                joined.append((connection, entry))
        return joined

    async def _extract_topics(self, title: str | None, result: AnalysisResult) -> list[str]:
        try:
            return await self.topic_agent.extract(title, result.summary, result.bullets)
        except ProviderUnavailable as e:
            logger.warning(f"Topic extraction failed, storing article without topics: {e}")
            return []

    async def _upsert(self, entry: ArticleMemoryEntry) -> None:
        async with self._locks.hold(f"article:{entry.url}"):
            self._entries[entry.url] = entry
            self._recency[entry.url] = next(self._sequence)

    async def _index_topics(self, url: str, topics: list[str]) -> int:
        touched = 0
        for topic in topics:
            async with self._locks.hold(f"topic:{topic}"):
                bucket = self._topic_index.setdefault(topic, [])
                if url not in bucket:
                    bucket.append(url)
                    touched += 1
        return touched

    def _candidates(self, entry: ArticleMemoryEntry) -> list[tuple[ArticleMemoryEntry, list[str], bool]]:
        recent = [e for e in self._recent_entries() if e.url != entry.url][: self.candidate_window]
        candidates = []
        for other in recent:
            shared = [t for t in entry.topics if t in other.topics]
            same_author = bool(entry.author) and entry.author == other.author
            if shared or same_author:
                candidates.append((other, shared, same_author))
        return candidates

    async def _compute_connections(self, entry: ArticleMemoryEntry) -> list[Connection]:
        candidates = self._candidates(entry)
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self.max_parallel)

        async def explain(other: ArticleMemoryEntry, shared: list[str], same_author: bool):
            async with semaphore:
                return await attempt(
                    self.connection_agent.explain(entry, other, shared, same_author),
                    source=f"connection:{other.url}",
                )

        outcomes = await asyncio.gather(
            *(explain(other, shared, same_author) for other, shared, same_author in candidates)
        )
        connections: list[Connection] = []
        for (other, shared, same_author), outcome in zip(candidates, outcomes):
            if not outcome.ok or not outcome.value:
                continue
            connections.append(
                Connection(
                    url=other.url,
                    reason=outcome.value,
                    strength=connection_strength(len(shared), same_author),
                )
            )
        # sorted() is stable, so equal strengths keep recency order.
        connections = sorted(connections, key=lambda c: c.strength, reverse=True)
        return connections[: self.max_connections]

    async def record_article(
        self, url: str, result: AnalysisResult, metadata: SourceMetadata
    ) -> MemoryUpdateSummary:
        topics = await self._extract_topics(metadata.title, result)
        entry = ArticleMemoryEntry(
            url=url,
            analyzed_at=datetime.now(timezone.utc).isoformat(),
            title=metadata.title,
            author=metadata.author,
            source=metadata.source or metadata.channel,
            published_at=metadata.published_at,
            summary=result.summary,
            bullets=list(result.bullets),
            topics=topics,
            credibility_score=result.credibility.score,
            credibility_label=result.credibility.label,
        )
        await self._upsert(entry)
        touched = await self._index_topics(url, topics)

        try:
            connections = await self._compute_connections(entry)
        except Exception as e:
            logger.error(f"Connection recompute failed for {url}: {e}")
            connections = []

        key = cache_key(url)
        async with self._locks.hold(f"connections:{key}"):
            self._connections[key] = connections

        log_service.log_event(
            event_type="memory_updated",
            message="Article recorded in memory",
            url=url,
            topics=topics,
            connections=len(connections),
        )
        return MemoryUpdateSummary(
            url=url,
            topics=topics,
            connections=connections,
            topic_buckets_touched=touched,
        )
