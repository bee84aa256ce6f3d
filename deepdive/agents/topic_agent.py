from __future__ import annotations

from typing import Any

from deepdive.agents.base import BaseAgent
from deepdive.errors import ParseFailure
from deepdive.services.prompt_store import render_prompt

MAX_TOPICS = 5


def parse_topics(payload: Any) -> list[str]:
    if isinstance(payload, dict):
        payload = payload.get("topics")
    if not isinstance(payload, list):
        raise ParseFailure("topic payload is not an array")
    topics: list[str] = []
    for item in payload:
        topic = " ".join(str(item).lower().split())
        if topic and topic not in topics:
            topics.append(topic)
        if len(topics) >= MAX_TOPICS:
            break
    return topics


class TopicAgent(BaseAgent):
    name = "topics"
    provider = "gemini"

    async def extract(self, title: str | None, summary: str, bullets: list[str]) -> list[str]:
        prompt = render_prompt(
            "topics.prompt",
            title=title or "Untitled",
            summary=summary,
            bullets="\n".join(f"- {b}" for b in bullets),
        )
        return parse_topics(await self.complete_json(prompt, kind="array"))
