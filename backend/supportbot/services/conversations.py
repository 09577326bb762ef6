"""Conversation lifecycle: create, look up, resume and expire sessions."""
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from supportbot.models.conversation import Conversation
from supportbot.middleware.logging import get_logger

logger = get_logger()


class ConversationService:
    """Service for conversation identity and timestamps."""

    def __init__(self, db: Session):
        self.db = db

    def create_conversation(self) -> Conversation:
        """Allocate and persist a fresh conversation."""
        now = datetime.utcnow()
        conversation = Conversation(created_at=now, updated_at=now)
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)

        logger.info("conversation_created", conversation_id=str(conversation.id))
        return conversation

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return self.db.get(Conversation, conversation_id)

    def conversation_exists(self, conversation_id: UUID) -> bool:
        return self.db.query(Conversation.id).filter(
            Conversation.id == conversation_id
        ).first() is not None

    def touch(self, conversation_id: UUID) -> None:
        """Advance updated_at. Committed together with the caller's pending changes."""
        conversation = self.get_conversation(conversation_id)
        if conversation is not None:
            conversation.updated_at = datetime.utcnow()

    def resolve(self, session_id: Optional[UUID]) -> Tuple[Conversation, bool]:
        """
        Return the conversation for a client-supplied session id.

        A missing or unknown id is not an error: a new conversation is created
        and handed back in its place (e.g. after the server data was reset).

        Returns:
            Tuple of (conversation, created)
        """
        if session_id is not None:
            conversation = self.get_conversation(session_id)
            if conversation is not None:
                return conversation, False

            logger.info("conversation_not_found", requested_session_id=str(session_id))

        return self.create_conversation(), True

    def purge_older_than(self, cutoff: datetime) -> int:
        """
        Delete conversations idle since before `cutoff`, with their messages.

        Returns:
            Number of conversations deleted
        """
        stale = self.db.query(Conversation).filter(
            Conversation.updated_at < cutoff
        ).all()

        for conversation in stale:
            self.db.delete(conversation)
        self.db.commit()

        if stale:
            logger.info("conversations_purged", count=len(stale), cutoff=cutoff.isoformat())
        return len(stale)
