from __future__ import annotations

from fastapi import APIRouter, Depends

from deepdive.api.deps import get_conversations
from deepdive.errors import InvalidRequest
from deepdive.models.schemas import ChatRequest, ChatResponse, ConversationResponse
from deepdive.services.conversations import ConversationStore

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    conversations: ConversationStore = Depends(get_conversations),
):
    if not request.conversation_id or not request.user_message:
        raise InvalidRequest("Missing required fields: conversation_id, user_message")
    reply = await conversations.chat(
        request.conversation_id,
        request.user_message,
        request.response_length,
    )
    return ChatResponse(assistant_message=reply)


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    conversations: ConversationStore = Depends(get_conversations),
):
    conversation = conversations.get(conversation_id)
    return ConversationResponse(
        conversation_id=conversation.id,
        url=conversation.url,
        messages=list(conversation.messages),
    )
