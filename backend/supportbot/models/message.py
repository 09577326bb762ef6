"""Message model."""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Uuid, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from supportbot.database import Base


class MessageSender(str, enum.Enum):
    """Who wrote a message. The system prompt is never stored."""
    USER = "user"
    AI = "ai"


class Message(Base):
    """Immutable message in a conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "position", name="uq_messages_conversation_position"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sender = Column(
        SQLEnum(MessageSender, values_callable=lambda e: [m.value for m in e], name="message_sender"),
        nullable=False
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Insertion order within the conversation, breaks created_at ties
    position = Column(Integer, nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<Message {self.id} sender={self.sender.value} position={self.position}>"
