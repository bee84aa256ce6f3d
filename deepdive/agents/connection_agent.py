from __future__ import annotations

from deepdive.agents.base import BaseAgent
from deepdive.models.memory import ArticleMemoryEntry
from deepdive.services.prompt_store import render_prompt


def first_sentence(text: str) -> str:
    cleaned = " ".join(text.strip().strip('"').split())
    for terminator in (". ", "! ", "? "):
        idx = cleaned.find(terminator)
        if idx >= 0:
            return cleaned[: idx + 1]
    return cleaned


class ConnectionAgent(BaseAgent):
    """One-sentence explanation of how a past article relates to a new one."""

    name = "connection"
    provider = "gemini"

    async def explain(
        self,
        article: ArticleMemoryEntry,
        candidate: ArticleMemoryEntry,
        shared_topics: list[str],
        same_author: bool,
    ) -> str:
        prompt = render_prompt(
            "connection.prompt",
            title_a=article.title or article.url,
            summary_a=article.summary,
            title_b=candidate.title or candidate.url,
            summary_b=candidate.summary,
            shared_topics=", ".join(shared_topics) or "none",
            same_author="yes" if same_author else "no",
        )
        return first_sentence(await self.complete(prompt, max_tokens=200))
