"""Append-only message log, keyed by conversation."""
from datetime import datetime
from typing import List
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session

from supportbot.models.message import Message, MessageSender
from supportbot.services.conversations import ConversationService


class MessageStore:
    """Ordered message storage. Appending is the only mutation."""

    def __init__(self, db: Session, conversations: ConversationService | None = None):
        self.db = db
        self.conversations = conversations or ConversationService(db)

    def append(self, conversation_id: UUID, sender: MessageSender, content: str) -> Message:
        """
        Persist a message at the end of a conversation and touch the conversation.

        Args:
            conversation_id: Owning conversation
            sender: MessageSender.USER or MessageSender.AI
            content: Message text, stored as given

        Returns:
            The persisted Message
        """
        next_position = self.db.query(
            func.coalesce(func.max(Message.position) + 1, 0)
        ).filter(Message.conversation_id == conversation_id).scalar()

        message = Message(
            conversation_id=conversation_id,
            sender=MessageSender(sender),
            content=content,
            created_at=datetime.utcnow(),
            position=next_position
        )
        self.db.add(message)
        self.conversations.touch(conversation_id)
        self.db.commit()
        self.db.refresh(message)
        return message

    def list_all(self, conversation_id: UUID) -> List[Message]:
        """Full transcript, oldest first."""
        return self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.created_at.asc(), Message.position.asc()).all()

    def list_recent(self, conversation_id: UUID, limit: int) -> List[Message]:
        """
        The `limit` most recent messages, oldest first.

        Given N stored messages this returns exactly min(N, limit) of them.
        """
        if limit <= 0:
            return []

        messages = self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.created_at.desc(), Message.position.desc()).limit(limit).all()

        # Reverse to chronological order
        return list(reversed(messages))
