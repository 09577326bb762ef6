"""Pydantic schemas for request/response validation."""
from supportbot.schemas.chat import ChatRequest, ChatResponse, MessageOut, HistoryResponse

__all__ = ["ChatRequest", "ChatResponse", "MessageOut", "HistoryResponse"]
