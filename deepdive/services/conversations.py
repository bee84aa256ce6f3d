from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from loguru import logger

from deepdive.agents.chat_agent import ChatAgent
from deepdive.errors import NotFound, ProviderUnavailable
from deepdive.models.schemas import ChatMessage, SourceMetadata
from deepdive.services import logger as log_service
from deepdive.services.locks import KeyedLocks

CHAT_APOLOGY = "Sorry, I encountered an error processing your message. Please try again."


@dataclass
class Conversation:
    id: str
    url: str
    content: str
    metadata: SourceMetadata
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ConversationStore:
    """Per-analysis chat context and history. Conversations live for the process."""

    def __init__(self, chat_agent: ChatAgent | None = None):
        self._conversations: dict[str, Conversation] = {}
        self._locks = KeyedLocks()
        self.chat_agent = chat_agent if chat_agent is not None else ChatAgent()

    async def create(self, url: str, content: str, metadata: SourceMetadata) -> str:
        conversation_id = str(uuid4())
        async with self._locks.hold(conversation_id):
            self._conversations[conversation_id] = Conversation(
                id=conversation_id,
                url=url,
                content=content,
                metadata=metadata,
            )
        return conversation_id

    def get(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        return conversation

    def messages(self, conversation_id: str) -> list[ChatMessage]:
        return list(self.get(conversation_id).messages)

    def __len__(self) -> int:
        return len(self._conversations)

    async def chat(
        self,
        conversation_id: str,
        user_message: str,
        response_length: str | None = "auto",
    ) -> str:
        """One chat turn.

        The per-conversation lock is held across the provider call, so racing
        turns on one conversation are applied one after another. A failed
        provider call returns ``CHAT_APOLOGY`` and records nothing.
        """
        conversation = self.get(conversation_id)
        async with self._locks.hold(conversation_id):
            try:
                reply = await self.chat_agent.reply(
                    conversation.content,
                    conversation.metadata,
                    list(conversation.messages),
                    user_message,
                    response_length,
                )
            except ProviderUnavailable as e:
                logger.warning(f"Chat failed for conversation {conversation_id}: {e}")
                return CHAT_APOLOGY

            conversation.messages.extend(
                [
                    ChatMessage(role="user", text=user_message),
                    ChatMessage(role="assistant", text=reply),
                ]
            )

        log_service.log_event(
            event_type="chat_turn",
            message="Chat turn recorded",
            conversation_id=conversation_id,
            history_length=len(conversation.messages),
        )
        return reply
