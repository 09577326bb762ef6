"""Database models."""
from supportbot.models.conversation import Conversation
from supportbot.models.message import Message, MessageSender

__all__ = ["Conversation", "Message", "MessageSender"]
