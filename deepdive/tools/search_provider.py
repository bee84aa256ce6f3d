from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from deepdive.config import settings
from deepdive.errors import ProviderUnavailable
from deepdive.tools import brave_search, tavily_search
from deepdive.tools.tavily_search import SearchResult


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def search(query: str, *, max_results: int = 5) -> SearchResponse:
    provider = settings.search_provider.lower().strip()
    use_fallback = settings.search_fallback_to_tavily

    if provider in ("", "none"):
        raise ProviderUnavailable("web search is disabled", provider="search")

    if provider == "tavily":
        results = await tavily_search.search(query=query, max_results=max_results)
        return SearchResponse(results=results, provider="tavily")

    if provider == "brave":
        try:
            results = await brave_search.search(query=query, max_results=max_results)
            if results or not use_fallback:
                return SearchResponse(results=results, provider="brave")

            fallback_results = await tavily_search.search(query=query, max_results=max_results)
            return SearchResponse(
                results=fallback_results,
                provider="tavily",
                fallback_from="brave",
                fallback_reason="brave returned zero results",
            )
        except Exception as e:
            if not use_fallback:
                raise
            logger.warning(f"Brave search failed, falling back to Tavily: {e}")
            fallback_results = await tavily_search.search(query=query, max_results=max_results)
            return SearchResponse(
                results=fallback_results,
                provider="tavily",
                fallback_from="brave",
                fallback_reason=str(e),
            )

    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
