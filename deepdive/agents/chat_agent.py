from __future__ import annotations

from typing import Sequence

from deepdive.agents.base import BaseAgent
from deepdive.config import settings
from deepdive.models.schemas import ChatMessage, SourceMetadata
from deepdive.services.prompt_store import has_prompt, render_prompt

DEFAULT_LENGTH = "auto"


def length_instruction(hint: str | None) -> str:
    key = (hint or DEFAULT_LENGTH).strip().lower()
    if not has_prompt(f"chat.length.{key}"):
        key = DEFAULT_LENGTH
    return render_prompt(f"chat.length.{key}")


class ChatAgent(BaseAgent):
    """Answers questions about one stored source, grounded in its text."""

    name = "chat"
    provider = "anthropic"

    def build_system_prompt(self, content: str, metadata: SourceMetadata, hint: str | None) -> str:
        return render_prompt(
            "chat.system_prompt",
            length_instruction=length_instruction(hint),
            title=metadata.title or "Unknown",
            author=metadata.author or "Unknown",
            content=content[: settings.prompt_content_chars],
        )

    async def reply(
        self,
        content: str,
        metadata: SourceMetadata,
        history: Sequence[ChatMessage],
        user_message: str,
        response_length: str | None = None,
    ) -> str:
        messages = [
            {"role": "assistant" if m.role == "assistant" else "user", "content": m.text}
            for m in history
        ]
        messages.append({"role": "user", "content": user_message})
        return await self.complete(
            system=self.build_system_prompt(content, metadata, response_length),
            messages=messages,
        )
