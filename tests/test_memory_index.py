from __future__ import annotations

import json
import re

import pytest

from deepdive.agents.connection_agent import ConnectionAgent
from deepdive.agents.topic_agent import TopicAgent
from deepdive.errors import ProviderUnavailable
from deepdive.models.schemas import (
    AnalysisResult,
    CredibilityAssessment,
    FactCheckReport,
    SourceMeta,
    SourceMetadata,
)
from deepdive.services.analysis_cache import cache_key
from deepdive.services.memory_index import ArticleMemoryIndex, connection_strength
from tests.fakes import with_client

# Titles look like "<name> [topic, topic]" so the fake topic agent can answer per article.
_TITLE_TOPICS = re.compile(r"Title: .*?\[(.*?)\]")


def _topics_from_prompt(kwargs) -> str:
    prompt = kwargs["messages"][-1]["content"]
    match = _TITLE_TOPICS.search(prompt)
    topics = [t.strip() for t in match.group(1).split(",") if t.strip()] if match else []
    return json.dumps(topics)


def _index(**kwargs) -> ArticleMemoryIndex:
    return ArticleMemoryIndex(
        topic_agent=with_client(TopicAgent(), _topics_from_prompt),
        connection_agent=with_client(ConnectionAgent(), "They cover the same story."),
        **kwargs,
    )


def _result(summary: str = "A summary.") -> AnalysisResult:
    return AnalysisResult(
        summary=summary,
        bullets=["one", "two"],
        credibility=CredibilityAssessment(score=0.8, label="Reliable"),
        fact_check=FactCheckReport(),
        source_meta=SourceMeta(type="article", word_count=10, reading_time=1),
        conversation_id="c",
    )


async def _record(index: ArticleMemoryIndex, url: str, topics: list[str], author: str | None = None):
    metadata = SourceMetadata(title=f"{url} [{', '.join(topics)}]", author=author, source="Example")
    return await index.record_article(url, _result(), metadata)


@pytest.mark.asyncio
async def test_shared_topic_creates_connection_to_earlier_article():
    index = _index()
    await _record(index, "https://a.example/1", ["transit", "budget"])
    summary = await _record(index, "https://b.example/2", ["transit", "weather"])

    assert summary.topics == ["transit", "weather"]
    assert [c.url for c in summary.connections] == ["https://a.example/1"]
    connection = summary.connections[0]
    assert connection.strength >= 1
    assert connection.reason == "They cover the same story."

    joined = index.connections(cache_key("https://b.example/2"))
    assert [(c.url, e.title) for c, e in joined] == [
        ("https://a.example/1", "https://a.example/1 [transit, budget]")
    ]


@pytest.mark.asyncio
async def test_same_author_adds_exactly_two():
    topic_only = _index()
    await _record(topic_only, "https://a.example/1", ["transit"], author="Jane")
    without_author = await _record(topic_only, "https://b.example/2", ["transit"], author="Sam")

    with_author_index = _index()
    await _record(with_author_index, "https://a.example/1", ["transit"], author="Jane")
    with_author = await _record(with_author_index, "https://b.example/2", ["transit"], author="Jane")

    assert without_author.connections[0].strength == 1
    assert with_author.connections[0].strength == without_author.connections[0].strength + 2


@pytest.mark.asyncio
async def test_same_author_without_topic_overlap_still_connects():
    index = _index()
    await _record(index, "https://a.example/1", ["gardening"], author="Jane")
    summary = await _record(index, "https://b.example/2", ["rockets"], author="Jane")

    assert [c.strength for c in summary.connections] == [2]


@pytest.mark.asyncio
async def test_unrelated_articles_do_not_connect():
    index = _index()
    await _record(index, "https://a.example/1", ["gardening"], author="Jane")
    summary = await _record(index, "https://b.example/2", ["rockets"], author="Sam")

    assert summary.connections == []
    assert index.connections(cache_key("https://b.example/2")) == []


@pytest.mark.asyncio
async def test_connections_sorted_by_strength_and_capped():
    index = _index(max_connections=2)
    await _record(index, "https://x.example/1", ["a"])
    await _record(index, "https://x.example/2", ["a", "b", "c"])
    await _record(index, "https://x.example/3", ["a", "b"])
    summary = await _record(index, "https://x.example/4", ["a", "b", "c"])

    assert [(c.url, c.strength) for c in summary.connections] == [
        ("https://x.example/2", 3),
        ("https://x.example/3", 2),
    ]


@pytest.mark.asyncio
async def test_candidates_limited_to_recent_window():
    index = _index()
    for n in range(25):
        await _record(index, f"https://x.example/{n}", ["shared"])
    calls_before = len(index.connection_agent.client.calls)

    await _record(index, "https://x.example/new", ["shared"])

    assert len(index.connection_agent.client.calls) - calls_before == 20


@pytest.mark.asyncio
async def test_failed_reasoning_drops_only_that_candidate():
    def reasoning(kwargs):
        if "ARTICLE B: https://a.example/1" in kwargs["messages"][-1]["content"]:
            raise ProviderUnavailable("down")
        return "Related."

    index = _index()
    with_client(index.connection_agent, reasoning)
    await _record(index, "https://a.example/1", ["transit"])
    await _record(index, "https://a.example/2", ["transit"])
    summary = await _record(index, "https://a.example/3", ["transit"])

    assert [c.url for c in summary.connections] == ["https://a.example/2"]


@pytest.mark.asyncio
async def test_topic_failure_still_records_article():
    index = _index()
    with_client(index.topic_agent, error=ProviderUnavailable("down"))

    summary = await _record(index, "https://a.example/1", ["ignored"])

    assert summary.topics == []
    assert index.get("https://a.example/1") is not None


@pytest.mark.asyncio
async def test_topic_buckets_hold_each_url_once():
    index = _index()
    await _record(index, "https://a.example/1", ["transit"])
    again = await _record(index, "https://a.example/1", ["transit"])
    await _record(index, "https://a.example/2", ["transit"])

    assert again.topic_buckets_touched == 0
    assert index.topic_articles("transit") == ["https://a.example/1", "https://a.example/2"]
    assert len(index) == 2


@pytest.mark.asyncio
async def test_history_is_newest_first_and_capped():
    index = _index()
    for n in range(55):
        await _record(index, f"https://h.example/{n}", [f"topic {n}"])

    entries, total = index.history()

    assert total == 55
    assert len(entries) == 50
    assert entries[0].url == "https://h.example/54"
    stamps = [e.analyzed_at for e in entries]
    assert stamps == sorted(stamps, reverse=True)

    widened, _ = index.history(limit=500)
    assert len(widened) == 50


def test_connection_strength():
    assert connection_strength(0, True) == 2
    assert connection_strength(3, False) == 3
    assert connection_strength(1, True) == 3
