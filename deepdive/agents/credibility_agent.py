from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, AsyncIterator
from urllib.parse import urlsplit

from loguru import logger
from pydantic import ValidationError

from deepdive.agents.base import BaseAgent
from deepdive.config import settings
from deepdive.errors import ParseFailure
from deepdive.models.schemas import (
    AuthorAnalysis,
    ContentAnalysis,
    CredibilityAssessment,
    ScoreBreakdown,
    SourceMetadata,
    SourceRef,
    WebsiteAnalysis,
)
from deepdive.services.json_extract import extract_json
from deepdive.services.prompt_store import render_prompt
from deepdive.tools import search_provider

UNABLE_TO_ANALYZE = "Unable to analyze at this time."
DEGRADED_ASSESSMENT = (
    "Credibility analysis temporarily unavailable. This does not reflect on the source quality."
)
VALID_LABELS = {"reliable": "Reliable", "mixed": "Mixed", "low": "Low", "unknown": "Unknown"}


def degraded_credibility() -> CredibilityAssessment:
    """Fixed-shape stand-in: every structured sub-field present with a placeholder."""
    return CredibilityAssessment(
        score=0.5,
        label="Unknown",
        overall_assessment=DEGRADED_ASSESSMENT,
        score_breakdown=ScoreBreakdown(
            website_score=0.5,
            author_score=0.5,
            content_score=0.5,
            explanation=UNABLE_TO_ANALYZE,
        ),
        website_analysis=WebsiteAnalysis(
            type=UNABLE_TO_ANALYZE,
            reputation=UNABLE_TO_ANALYZE,
            editorial_standards=UNABLE_TO_ANALYZE,
            potential_conflicts=UNABLE_TO_ANALYZE,
        ),
        author_analysis=AuthorAnalysis(
            expertise=UNABLE_TO_ANALYZE,
            background=UNABLE_TO_ANALYZE,
            reputation_signals=UNABLE_TO_ANALYZE,
            potential_bias=UNABLE_TO_ANALYZE,
        ),
        content_analysis=ContentAnalysis(
            evidence_quality=UNABLE_TO_ANALYZE,
            tone=UNABLE_TO_ANALYZE,
            fact_vs_opinion=UNABLE_TO_ANALYZE,
            logical_reasoning=UNABLE_TO_ANALYZE,
            balance=UNABLE_TO_ANALYZE,
        ),
        author_sources=[],
    )


def _clamp_score(value: Any) -> float | None:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(score):
        return None
    # Some models answer on a 0-100 scale despite the prompt.
    if score > 1.0 and score <= 100.0:
        score = score / 100.0
    return min(max(score, 0.0), 1.0)


def _label_for(label: Any, score: float) -> str:
    if isinstance(label, str) and label.strip().lower() in VALID_LABELS:
        return VALID_LABELS[label.strip().lower()]
    if score >= 0.7:
        return "Reliable"
    if score >= 0.4:
        return "Mixed"
    return "Low"


def _text_fields(raw: Any, model_cls: type) -> Any:
    if not isinstance(raw, dict):
        return None
    values = {
        name: str(raw.get(name) or "").strip()
        for name in model_cls.model_fields
    }
    return model_cls(**values)


def parse_credibility(payload: Any, author_sources: list[SourceRef] | None = None) -> CredibilityAssessment:
    try:
        return _build_credibility(payload, author_sources)
    except ValidationError as e:
        raise ParseFailure(f"credibility payload failed validation: {e}") from e


def _build_credibility(payload: Any, author_sources: list[SourceRef] | None) -> CredibilityAssessment:
    if not isinstance(payload, dict):
        raise ParseFailure("credibility payload is not an object")
    score = _clamp_score(payload.get("score"))
    if score is None:
        raise ParseFailure("credibility payload has no numeric score")

    breakdown = None
    raw_breakdown = payload.get("score_breakdown")
    if isinstance(raw_breakdown, dict):
        breakdown = ScoreBreakdown(
            website_score=_clamp_score(raw_breakdown.get("website_score")),
            author_score=_clamp_score(raw_breakdown.get("author_score")),
            content_score=_clamp_score(raw_breakdown.get("content_score")),
            explanation=str(raw_breakdown.get("explanation") or "").strip(),
        )

    overall = payload.get("overall_assessment") or payload.get("why") or ""
    return CredibilityAssessment(
        score=score,
        label=_label_for(payload.get("label"), score),
        overall_assessment=str(overall).strip(),
        score_breakdown=breakdown,
        website_analysis=_text_fields(payload.get("website_analysis"), WebsiteAnalysis),
        author_analysis=_text_fields(payload.get("author_analysis"), AuthorAnalysis),
        content_analysis=_text_fields(payload.get("content_analysis"), ContentAnalysis),
        author_sources=list(author_sources or []),
    )


@dataclass
class CredibilityRequest:
    prompt: str
    author_sources: list[SourceRef]


class CredibilityAgent(BaseAgent):
    name = "credibility"
    provider = "anthropic"

    async def research_author(self, metadata: SourceMetadata, source: str) -> list[SourceRef]:
        """Numbered web results about the author; empty when search is unavailable."""
        if not metadata.author:
            return []
        query = render_prompt(
            "credibility.author_search_query", author=metadata.author, source=source
        ).strip()
        try:
            response = await search_provider.search(query, max_results=settings.search_max_results)
        except Exception as e:
            logger.info(f"Author research skipped: {e}")
            return []
        return [
            SourceRef(index=idx, title=r.title or r.url, url=r.url)
            for idx, r in enumerate(response.results, start=1)
            if r.url
        ]

    async def prepare(self, content: str, metadata: SourceMetadata, url: str) -> CredibilityRequest:
        source = metadata.source or urlsplit(url).hostname or url
        author_sources = await self.research_author(metadata, source)
        formatted_sources = "\n".join(f"[{s.index}] {s.title} - {s.url}" for s in author_sources)
        prompt = render_prompt(
            "credibility.prompt",
            url=url,
            source=source,
            author=metadata.author or "Unknown",
            published_at=metadata.published_at or "Unknown",
            author_sources=formatted_sources or "(none)",
            content=content[: settings.prompt_content_chars],
        )
        return CredibilityRequest(prompt=prompt, author_sources=author_sources)

    async def assess(self, content: str, metadata: SourceMetadata, url: str) -> CredibilityAssessment:
        request = await self.prepare(content, metadata, url)
        payload = await self.complete_json(request.prompt)
        return parse_credibility(payload, request.author_sources)

    def stream_assessment(self, request: CredibilityRequest) -> AsyncIterator[str]:
        return self.stream_text(request.prompt)

    @staticmethod
    def parse_text(text: str, request: CredibilityRequest) -> CredibilityAssessment:
        return parse_credibility(extract_json(text), request.author_sources)
