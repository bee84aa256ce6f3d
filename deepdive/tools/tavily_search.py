from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from deepdive.config import credential, settings
from deepdive.errors import ProviderUnavailable


@dataclass
class SearchResult:
    title: str
    url: str
    content: str
    score: float


async def search(
    query: str,
    *,
    search_depth: str = "basic",
    max_results: int = 5,
    topic: str = "general",
) -> list[SearchResult]:
    """Execute a Tavily web search and return structured results."""
    api_key = credential(settings.tavily_api_key)
    if not api_key:
        raise ProviderUnavailable("TAVILY_API_KEY is not configured", provider="tavily")

    from tavily import AsyncTavilyClient

    client = AsyncTavilyClient(api_key=api_key)
    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "topic": topic,
    }
    response = await client.search(**kwargs)

    return [
        SearchResult(
            title=r.get("title", ""),
            url=r.get("url", ""),
            content=r.get("content", ""),
            score=r.get("score", 0.0),
        )
        for r in response.get("results", [])
    ]
