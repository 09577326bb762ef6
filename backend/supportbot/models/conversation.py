"""Conversation model."""
from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from supportbot.database import Base


class Conversation(Base):
    """A support session; its id is the only handle a client holds."""

    __tablename__ = "conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.position"
    )

    def __repr__(self):
        return f"<Conversation {self.id}>"
