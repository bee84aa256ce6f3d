from __future__ import annotations

from typing import Any, AsyncIterator

from deepdive.agents.base import BaseAgent
from deepdive.errors import ParseFailure
from deepdive.models.schemas import SourceMetadata, SummaryResult
from deepdive.services.json_extract import extract_json
from deepdive.services.prompt_store import render_prompt

DEGRADED_SUMMARY = (
    "Summary temporarily unavailable. The content has been saved and you can still chat about it."
)
DEGRADED_BULLETS = (
    "AI summarization is currently experiencing issues",
    "You can still use the chat feature to ask questions",
)


def degraded_summary() -> SummaryResult:
    return SummaryResult(summary=DEGRADED_SUMMARY, bullets=list(DEGRADED_BULLETS))


def parse_summary(payload: Any) -> SummaryResult:
    if not isinstance(payload, dict):
        raise ParseFailure("summary payload is not an object")
    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise ParseFailure("summary payload has no summary text")
    raw_bullets = payload.get("bullets") or []
    if not isinstance(raw_bullets, list):
        raw_bullets = [raw_bullets]
    bullets = [str(b).strip() for b in raw_bullets if str(b).strip()]
    return SummaryResult(summary=summary.strip(), bullets=bullets)


class SummaryAgent(BaseAgent):
    """Summary and five key bullets, using only what the source says.

    Runs on Gemini by default; the orchestrator builds a second instance on
    the Anthropic provider as the one-shot fallback with the same prompt.
    """

    name = "summary"
    provider = "gemini"

    def build_prompt(self, content: str, metadata: SourceMetadata) -> str:
        return render_prompt(
            "summary.prompt",
            title=metadata.title or "Unknown",
            author=metadata.author or "Unknown",
            published_at=metadata.published_at or "Unknown",
            content=content,
        )

    async def summarize(self, content: str, metadata: SourceMetadata) -> SummaryResult:
        payload = await self.complete_json(self.build_prompt(content, metadata))
        return parse_summary(payload)

    def stream_summary(self, content: str, metadata: SourceMetadata) -> AsyncIterator[str]:
        return self.stream_text(self.build_prompt(content, metadata))

    @staticmethod
    def parse_text(text: str) -> SummaryResult:
        return parse_summary(extract_json(text))
