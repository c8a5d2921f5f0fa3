"""Chatbot proxy to the Hugging Face inference API.

The user's message is forwarded as-is; the first generated text is
returned. The API key is never logged or echoed in errors.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel

from app.config import Settings, get_settings
from app.exceptions import UpstreamError, ValidationError
from app.logging_config import get_logger
from app.metrics import CHATBOT_CALL_DURATION, CHATBOT_CALLS

logger = get_logger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't generate a reply."
MAX_MESSAGE_LENGTH = 2000


class ReplyType(str, Enum):
    MODEL = "model"
    FALLBACK = "fallback"


class ChatReply(BaseModel):
    reply: str
    type: ReplyType = ReplyType.MODEL


def _extract_generated_text(data: Any) -> str:
    """Pull generated_text out of the inference response shape."""
    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, dict):
            return str(first.get("generated_text") or "")
    if isinstance(data, dict):
        return str(data.get("generated_text") or "")
    return ""


class ChatbotService:
    """Forwards chat messages to the configured inference model."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    async def reply(self, message: str) -> ChatReply:
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message is required.")
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                "Message is too long.", details={"max_length": MAX_MESSAGE_LENGTH}
            )

        headers = {"Content-Type": "application/json"}
        if self._settings.hf_api_key is not None:
            headers["Authorization"] = f"Bearer {self._settings.hf_api_key.get_secret_value()}"

        try:
            with CHATBOT_CALL_DURATION.time():
                async with httpx.AsyncClient(timeout=self._settings.hf_timeout_seconds) as client:
                    response = await client.post(
                        self._settings.hf_model_url,
                        json={"inputs": message},
                        headers=headers,
                    )
        except httpx.RequestError as exc:
            CHATBOT_CALLS.labels(status="error").inc()
            logger.error("chatbot_request_failed", error=type(exc).__name__)
            raise UpstreamError("chatbot", "Chat service unreachable") from exc

        CHATBOT_CALLS.labels(status=str(response.status_code)).inc()
        if response.status_code != 200:
            logger.warning("chatbot_bad_status", status_code=response.status_code)
            raise UpstreamError("chatbot", "Chat service returned an error")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("chatbot", "Chat service returned invalid JSON") from exc

        text = _extract_generated_text(data).strip()
        if not text:
            return ChatReply(reply=FALLBACK_REPLY, type=ReplyType.FALLBACK)
        return ChatReply(reply=text, type=ReplyType.MODEL)
