"""Reply orchestration for the support chat.

Flow for one inbound message:
- resolve (or silently create) the conversation
- read the bounded context window before storing the new message
- store the user message, whatever the model outcome
- call the model once and store its reply, or return a fixed fallback
"""
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from supportbot.knowledge import SYSTEM_PROMPT, WELCOME_MESSAGE, TRUNCATION_NOTICE, FALLBACK_MESSAGES
from supportbot.models.message import Message, MessageSender
from supportbot.middleware.logging import get_logger
from supportbot.services.conversations import ConversationService
from supportbot.services.messages import MessageStore
from supportbot.services.context_window import MAX_CONTEXT, build_context
from supportbot.services.conversation_lock import ConversationLock
from supportbot.services.llm import LLMService, LLMError

logger = get_logger()


class ServiceNotConfigured(Exception):
    """No model credential is configured; chat replies are unavailable."""
    pass


@dataclass
class ChatResult:
    reply: str
    session_id: UUID
    error: Optional[str] = None


@dataclass
class HistoryResult:
    session_id: UUID
    messages: List[Message] = field(default_factory=list)


class ChatService:
    """Service tying conversations, the message log and the model together."""

    def __init__(
        self,
        db: Session,
        llm_service: Optional[LLMService],
        conversation_lock: Optional[ConversationLock] = None,
        context_limit: int = MAX_CONTEXT,
        system_prompt: str = SYSTEM_PROMPT
    ):
        self.db = db
        self.llm_service = llm_service
        self.conversation_lock = conversation_lock or ConversationLock(None)
        self.context_limit = context_limit
        self.system_prompt = system_prompt
        self.conversations = ConversationService(db)
        self.messages = MessageStore(db, self.conversations)

    @property
    def llm_configured(self) -> bool:
        return self.llm_service is not None

    async def handle_message(
        self,
        message: str,
        session_id: Optional[UUID] = None,
        truncated: bool = False
    ) -> ChatResult:
        """
        Store a user message and produce the assistant's reply.

        Args:
            message: Validated user text (see input_guard.guard_message)
            session_id: Client's session id; unknown ids get a new conversation
            truncated: Whether the guard cut the message down. The model is
                not asked to answer a fragment; the truncation notice is
                stored and returned instead.

        Returns:
            ChatResult with the session id the client must use from now on.
            `error` holds the failure category when the reply is a fallback.

        Raises:
            ServiceNotConfigured: If no model is configured (nothing is stored)
            ConversationBusy: If another exchange holds the conversation
            SQLAlchemyError: On persistence failure
        """
        if not self.llm_configured:
            raise ServiceNotConfigured("AI service is not configured. Please set OPENAI_API_KEY.")

        conversation, created = self.conversations.resolve(session_id)
        conversation_id = conversation.id

        async with self.conversation_lock.hold(conversation_id):
            # Read before writing so the new message is not counted twice
            history = self.messages.list_recent(conversation_id, self.context_limit)
            self.messages.append(conversation_id, MessageSender.USER, message)

            if truncated:
                logger.info("message_truncated", conversation_id=str(conversation_id), length=len(message))
                self.messages.append(conversation_id, MessageSender.AI, TRUNCATION_NOTICE)
                return ChatResult(reply=TRUNCATION_NOTICE, session_id=conversation_id)

            turns = build_context(self.system_prompt, history, message)
            logger.info(
                "chat_reply_requested",
                conversation_id=str(conversation_id),
                new_conversation=created,
                context_messages=len(history)
            )

            try:
                reply = await self.llm_service.generate_reply(turns)
            except LLMError as e:
                logger.warning(
                    "chat_reply_fallback",
                    conversation_id=str(conversation_id),
                    category=e.category
                )
                return ChatResult(
                    reply=FALLBACK_MESSAGES[e.category],
                    session_id=conversation_id,
                    error=e.category
                )

            self.messages.append(conversation_id, MessageSender.AI, reply)

        return ChatResult(reply=reply, session_id=conversation_id)

    def start_new_conversation(self) -> ChatResult:
        """Create a conversation seeded with the welcome message. No model call."""
        conversation = self.conversations.create_conversation()
        self.messages.append(conversation.id, MessageSender.AI, WELCOME_MESSAGE)
        return ChatResult(reply=WELCOME_MESSAGE, session_id=conversation.id)

    def get_history(self, session_id: UUID) -> Optional[HistoryResult]:
        """Full transcript for a session, or None if the session is unknown."""
        conversation = self.conversations.get_conversation(session_id)
        if conversation is None:
            return None

        return HistoryResult(
            session_id=conversation.id,
            messages=self.messages.list_all(conversation.id)
        )
