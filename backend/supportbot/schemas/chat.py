"""Chat request/response schemas."""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from supportbot.models.message import MessageSender


class ChatRequest(BaseModel):
    """Request to send a chat message.

    Content rules (non-empty, trimmed, length cap, session id format) are
    enforced by services.input_guard so they produce a 400, not a 422.
    """

    message: Optional[str] = Field(None, max_length=100_000, description="User message")
    session_id: Optional[str] = Field(None, alias="sessionId", description="Existing session ID (optional)")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "message": "What jerseys do you have?",
                "sessionId": "123e4567-e89b-12d3-a456-426614174000"
            }
        }


class ChatResponse(BaseModel):
    """Reply to a chat message or to starting a session."""

    reply: str
    session_id: UUID = Field(..., alias="sessionId")
    error: Optional[str] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "reply": "We stock club, national team and retro jerseys...",
                "sessionId": "123e4567-e89b-12d3-a456-426614174000"
            }
        }


class MessageOut(BaseModel):
    """A stored message as returned to clients."""

    id: UUID
    conversation_id: UUID = Field(..., alias="conversationId")
    sender: MessageSender
    content: str
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class HistoryResponse(BaseModel):
    """Full transcript of a session, oldest message first."""

    messages: List[MessageOut]
    session_id: UUID = Field(..., alias="sessionId")

    class Config:
        populate_by_name = True
