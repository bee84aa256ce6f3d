from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from deepdive.errors import ProviderUnavailable
from deepdive.tools import search_provider
from deepdive.tools.tavily_search import SearchResult


def _result(url: str) -> SearchResult:
    return SearchResult(title="t", url=url, content="c", score=1.0)


@pytest.mark.asyncio
async def test_search_provider_uses_tavily_when_configured():
    with (
        patch("deepdive.tools.search_provider.settings") as mock_settings,
        patch(
            "deepdive.tools.search_provider.tavily_search.search",
            new=AsyncMock(return_value=[_result("https://a.example")]),
        ),
    ):
        mock_settings.search_provider = "tavily"
        mock_settings.search_fallback_to_tavily = True

        result = await search_provider.search("query", max_results=3)

    assert result.provider == "tavily"
    assert result.fallback_from is None


@pytest.mark.asyncio
async def test_brave_zero_results_fall_back_to_tavily():
    with (
        patch("deepdive.tools.search_provider.settings") as mock_settings,
        patch("deepdive.tools.search_provider.brave_search.search", new=AsyncMock(return_value=[])),
        patch(
            "deepdive.tools.search_provider.tavily_search.search",
            new=AsyncMock(return_value=[_result("https://b.example")]),
        ),
    ):
        mock_settings.search_provider = "brave"
        mock_settings.search_fallback_to_tavily = True

        result = await search_provider.search("query")

    assert result.provider == "tavily"
    assert result.fallback_from == "brave"
    assert result.results[0].url == "https://b.example"


@pytest.mark.asyncio
async def test_brave_error_without_fallback_propagates():
    with (
        patch("deepdive.tools.search_provider.settings") as mock_settings,
        patch(
            "deepdive.tools.search_provider.brave_search.search",
            new=AsyncMock(side_effect=ProviderUnavailable("BRAVE_API_KEY is not configured")),
        ),
    ):
        mock_settings.search_provider = "brave"
        mock_settings.search_fallback_to_tavily = False

        with pytest.raises(ProviderUnavailable):
            await search_provider.search("query")


@pytest.mark.asyncio
async def test_search_disabled_raises_provider_unavailable():
    with patch("deepdive.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "none"

        with pytest.raises(ProviderUnavailable):
            await search_provider.search("query")


@pytest.mark.asyncio
async def test_search_provider_raises_when_provider_unsupported():
    with patch("deepdive.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "unknown-provider"
        mock_settings.search_fallback_to_tavily = True

        with pytest.raises(ValueError):
            await search_provider.search("query")
