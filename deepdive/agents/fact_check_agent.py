from __future__ import annotations

import asyncio
import math
from typing import Any

from loguru import logger

from deepdive.agents.base import BaseAgent
from deepdive.config import settings
from deepdive.errors import ParseFailure
from deepdive.models.schemas import FactCheckClaim, FactCheckReport, FactCheckSource, SourceMetadata
from deepdive.services.prompt_store import render_prompt
from deepdive.tools import search_provider
from deepdive.tools.tavily_search import SearchResult

STATUSES = {
    "confirmed": "Confirmed",
    "partially confirmed": "Partially Confirmed",
    "uncertain": "Uncertain",
    "contradicted": "Contradicted",
}


def empty_report() -> FactCheckReport:
    return FactCheckReport(claims=[], sources=[])


def _normalize_status(value: Any) -> str:
    key = " ".join(str(value or "").replace("_", " ").lower().split())
    return STATUSES.get(key, "Uncertain")


def _reliability(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.5
    if not math.isfinite(score):
        return 0.5
    return min(max(score, 0.0), 1.0)


def parse_claim_list(payload: Any, max_claims: int) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        raise ParseFailure("claim extraction payload is not an array")
    claims: list[dict[str, Any]] = []
    for item in payload:
        if isinstance(item, str):
            item = {"claim": item}
        if not isinstance(item, dict):
            continue
        text = str(item.get("claim") or item.get("fact") or "").strip()
        if not text:
            continue
        queries = item.get("search_queries") or []
        if isinstance(queries, str):
            queries = [queries]
        claims.append(
            {"claim": text, "search_queries": [str(q).strip() for q in queries if str(q).strip()]}
        )
        if len(claims) >= max_claims:
            break
    return claims


class FactCheckAgent(BaseAgent):
    """Extract checkable claims, search the web for each, then grade them."""

    name = "fact_check"
    provider = "anthropic"

    async def _search_claim(self, query: str) -> list[SearchResult]:
        response = await search_provider.search(query, max_results=settings.search_max_results)
        return response.results

    async def gather_sources(self, claims: list[dict[str, Any]]) -> list[FactCheckSource]:
        queries = [c["search_queries"][0] for c in claims if c["search_queries"]]
        if not queries:
            return []
        raw_results = await asyncio.gather(
            *(self._search_claim(q) for q in queries), return_exceptions=True
        )
        sources: list[FactCheckSource] = []
        seen_urls: set[str] = set()
        for query, result in zip(queries, raw_results):
            if isinstance(result, BaseException):
                logger.info(f"Fact-check search skipped for {query!r}: {result}")
                continue
            for item in result:
                key = item.url.strip().lower()
                if not key or key in seen_urls:
                    continue
                seen_urls.add(key)
                sources.append(
                    FactCheckSource(
                        index=len(sources) + 1,
                        title=item.title or item.url,
                        url=item.url,
                        snippet=(item.content or "")[:300],
                    )
                )
        return sources

    async def check(self, content: str, metadata: SourceMetadata) -> FactCheckReport:
        excerpt = content[: settings.prompt_content_chars]
        payload = await self.complete_json(
            render_prompt(
                "fact_check.claims_prompt",
                title=metadata.title or "Unknown",
                content=excerpt,
                max_claims=settings.fact_check_max_claims,
            ),
            kind="array",
        )
        claims = parse_claim_list(payload, settings.fact_check_max_claims)
        if not claims:
            return empty_report()

        sources = await self.gather_sources(claims)
        formatted_claims = "\n".join(f"{i}. {c['claim']}" for i, c in enumerate(claims, start=1))
        formatted_sources = "\n".join(
            f"[{s.index}] {s.title} ({s.url}): {s.snippet}" for s in sources
        )
        verdicts = await self.complete_json(
            render_prompt(
                "fact_check.verify_prompt",
                claims=formatted_claims,
                sources=formatted_sources or "(no search results available)",
                content=excerpt,
            )
        )
        raw_verdicts = verdicts.get("claims") if isinstance(verdicts, dict) else None
        if not isinstance(raw_verdicts, list):
            raise ParseFailure("fact-check verdict payload has no claims array")

        checked: list[FactCheckClaim] = []
        for idx, claim in enumerate(claims):
            verdict = raw_verdicts[idx] if idx < len(raw_verdicts) else {}
            if not isinstance(verdict, dict):
                verdict = {}
            checked.append(
                FactCheckClaim(
                    claim=claim["claim"],
                    status=_normalize_status(verdict.get("status")),
                    assessment=str(verdict.get("assessment") or "").strip(),
                    reliability=_reliability(verdict.get("reliability")),
                    search_queries=claim["search_queries"],
                )
            )
        return FactCheckReport(claims=checked, sources=sources)
