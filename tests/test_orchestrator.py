from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from deepdive.agents.credibility_agent import UNABLE_TO_ANALYZE
from deepdive.agents.orchestrator import clean_content
from deepdive.agents.summary_agent import DEGRADED_BULLETS, DEGRADED_SUMMARY
from deepdive.errors import InternalFault, InvalidRequest
from deepdive.models.schemas import AnalyzeRequest
from deepdive.services.analysis_cache import cache_key
from deepdive.tools.search_provider import SearchResponse
from deepdive.tools.tavily_search import SearchResult
from tests.fakes import ARTICLE_URL, fail_all, make_request, with_client


@pytest.mark.asyncio
async def test_healthy_analysis_has_full_shape(orchestrator):
    words = " ".join(["word"] * 5000)
    request = make_request(url="https://example.com/a", content=words, title="T", author="A")

    result = await orchestrator.analyze(request)
    await orchestrator.drain()

    assert result.summary
    assert len(result.bullets) == 5
    assert 0.0 <= result.credibility.score <= 1.0
    assert result.source_meta.word_count == 5000
    assert result.source_meta.reading_time == 25
    assert result.source_meta.title == "T"
    assert result.fact_check.claims == []
    assert result.fact_check.sources == []

    again = await orchestrator.analyze(make_request(url="https://example.com/b", content=words))
    assert again.conversation_id != result.conversation_id


@pytest.mark.asyncio
async def test_second_analysis_of_same_url_is_served_from_cache(
    orchestrator, summary_agent, credibility_agent, fact_check_agent
):
    first = await orchestrator.analyze(make_request())
    calls_after_first = (
        len(summary_agent.client.calls),
        len(credibility_agent.client.calls),
        len(fact_check_agent.client.calls),
    )

    second = await orchestrator.analyze(make_request())
    await orchestrator.drain()

    assert second.model_dump_json() == first.model_dump_json()
    assert (
        len(summary_agent.client.calls),
        len(credibility_agent.client.calls),
        len(fact_check_agent.client.calls),
    ) == calls_after_first
    assert len(orchestrator.conversations) == 1


@pytest.mark.asyncio
async def test_missing_fields_raise_without_side_effects(orchestrator, summary_agent):
    with pytest.raises(InvalidRequest):
        await orchestrator.analyze(AnalyzeRequest(url=ARTICLE_URL))
    with pytest.raises(InvalidRequest):
        await orchestrator.analyze(AnalyzeRequest(content="text"))
    with pytest.raises(InvalidRequest):
        await orchestrator.analyze(AnalyzeRequest(url="  ", content="text"))

    assert await orchestrator.cache.size() == 0
    assert len(orchestrator.conversations) == 0
    assert summary_agent.client.calls == []


@pytest.mark.asyncio
async def test_summary_falls_back_to_secondary_provider(
    orchestrator, summary_agent, fallback_summary_agent
):
    fail_all(summary_agent)

    result = await orchestrator.analyze(make_request(content="y" * 10000))

    assert result.summary == "The city council approved a new transit budget."
    prompt = fallback_summary_agent.client.calls[0]["messages"][-1]["content"]
    assert "y" * 6000 in prompt
    assert "y" * 6001 not in prompt


@pytest.mark.asyncio
async def test_both_summary_paths_failing_gives_degraded_summary(
    orchestrator, summary_agent, fallback_summary_agent
):
    fail_all(summary_agent, fallback_summary_agent)

    result = await orchestrator.analyze(make_request())

    assert result.summary == DEGRADED_SUMMARY
    assert result.bullets == list(DEGRADED_BULLETS)
    assert len(result.bullets) == 2
    # The rest of the analysis is unaffected.
    assert result.credibility.label == "Reliable"


@pytest.mark.asyncio
async def test_unparseable_summary_counts_as_failure(
    orchestrator, summary_agent, fallback_summary_agent
):
    with_client(summary_agent, "I could not produce JSON, sorry.")
    fail_all(fallback_summary_agent)

    result = await orchestrator.analyze(make_request())

    assert result.summary == DEGRADED_SUMMARY


@pytest.mark.asyncio
async def test_credibility_failure_gives_degraded_assessment(orchestrator, credibility_agent):
    fail_all(credibility_agent)

    result = await orchestrator.analyze(make_request())
    payload = json.loads(result.model_dump_json())["credibility"]

    assert payload["score"] == 0.5
    assert payload["label"] == "Unknown"
    for section, keys in {
        "website_analysis": ["type", "reputation", "editorial_standards", "potential_conflicts"],
        "author_analysis": ["expertise", "background", "reputation_signals", "potential_bias"],
        "content_analysis": ["evidence_quality", "tone", "fact_vs_opinion", "logical_reasoning", "balance"],
    }.items():
        assert all(payload[section][key] == UNABLE_TO_ANALYZE for key in keys)
    assert result.summary != DEGRADED_SUMMARY


@pytest.mark.asyncio
async def test_every_provider_down_still_returns_a_result(
    orchestrator, summary_agent, fallback_summary_agent, credibility_agent, fact_check_agent
):
    fail_all(summary_agent, fallback_summary_agent, credibility_agent, fact_check_agent)

    result = await orchestrator.analyze(make_request())
    await orchestrator.drain()

    assert result.summary == DEGRADED_SUMMARY
    assert result.credibility.label == "Unknown"
    assert result.fact_check.claims == []
    assert orchestrator.conversations.get(result.conversation_id).url == ARTICLE_URL
    assert await orchestrator.cache.get(cache_key(ARTICLE_URL)) == result


@pytest.mark.asyncio
async def test_fact_check_sources_are_copied_into_credibility(orchestrator, fact_check_agent):
    claims = json.dumps([{"claim": "Vote was 7 to 2", "search_queries": ["council vote transit"]}])
    verdicts = json.dumps({"claims": [{"status": "Confirmed", "assessment": "[1]", "reliability": 0.9}]})
    with_client(fact_check_agent, [claims, verdicts])
    response = SearchResponse(
        results=[SearchResult(title="Minutes", url="https://city.example/minutes", content="7-2", score=1.0)],
        provider="brave",
    )

    with patch(
        "deepdive.agents.fact_check_agent.search_provider.search",
        new=AsyncMock(return_value=response),
    ):
        result = await orchestrator.analyze(make_request())

    assert result.fact_check.claims[0].status == "Confirmed"
    assert [s.url for s in result.credibility.fact_check_sources] == ["https://city.example/minutes"]


@pytest.mark.asyncio
async def test_analysis_is_recorded_in_memory(orchestrator):
    await orchestrator.analyze(make_request())
    await orchestrator.drain()

    entry = orchestrator.memory.get(ARTICLE_URL)
    assert entry is not None
    assert entry.topics == ["transit", "city budget"]
    assert entry.credibility_label == "Reliable"


@pytest.mark.asyncio
async def test_memory_failure_does_not_affect_the_response(orchestrator):
    orchestrator.memory.record_article = AsyncMock(side_effect=RuntimeError("boom"))

    result = await orchestrator.analyze(make_request())
    await orchestrator.drain()

    assert result.summary


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_fault(orchestrator):
    orchestrator.conversations.create = AsyncMock(side_effect=RuntimeError("store offline"))

    with pytest.raises(InternalFault, match="store offline"):
        await orchestrator.analyze(make_request())
    assert await orchestrator.cache.size() == 0


def test_injected_empty_stores_are_kept(orchestrator, conversations, memory):
    assert len(conversations) == 0 and len(memory) == 0
    assert orchestrator.conversations is conversations
    assert orchestrator.memory is memory


def test_clean_content_truncates_and_strips():
    assert clean_content("  a\x00b  ") == "ab"
    assert clean_content("x" * 50, max_tokens=10) == "x" * 40


def test_clean_content_truncates_before_stripping():
    # Leading whitespace counts against the character budget.
    assert clean_content(" " * 10 + "a" * 40, max_tokens=10) == "a" * 30


@pytest.mark.asyncio
async def test_degraded_capabilities_are_logged(
    orchestrator, summary_agent, fallback_summary_agent, credibility_agent, fact_check_agent
):
    fail_all(summary_agent, fallback_summary_agent, credibility_agent, fact_check_agent)

    with patch("deepdive.agents.orchestrator.log_service.log_analysis") as log_analysis:
        await orchestrator.analyze(make_request())
    await orchestrator.drain()

    kwargs = log_analysis.call_args.kwargs
    assert kwargs["summary_source"] == "default"
    assert kwargs["degraded"] == ["summary", "credibility", "fact_check"]
