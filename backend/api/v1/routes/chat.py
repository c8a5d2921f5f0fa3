"""Chatbot endpoint.

POST /api/v1/chat - Send a message to the assistant
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, rate_limit_chat
from app.logging_config import get_logger
from db.models import ActivityLog, User
from db.session import get_db_session
from services.chatbot import ChatbotService, ChatReply

logger = get_logger(__name__)
router = APIRouter()

LOGGED_MESSAGE_CHARS = 100


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)


def get_chatbot() -> ChatbotService:
    return ChatbotService()


@router.post("/chat", response_model=ChatReply)
async def chat(
    request: ChatRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    chatbot: ChatbotService = Depends(get_chatbot),
    _rate_limit: None = Depends(rate_limit_chat),
) -> ChatReply:
    """Forward a message to the assistant model.

    Only the first characters of the message are kept in the activity log.
    """
    reply = await chatbot.reply(request.message)

    db.add(
        ActivityLog(
            user_id=user.id,
            action="CHATBOT_INTERACTION",
            entity_type="chat",
            details={
                "message": request.message[:LOGGED_MESSAGE_CHARS],
                "reply_type": reply.type.value,
            },
        )
    )
    logger.info("chat_replied", reply_type=reply.type.value)
    return reply
