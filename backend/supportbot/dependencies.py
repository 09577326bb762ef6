"""FastAPI dependency providers.

Everything here reads the objects the lifespan put on app.state, so tests
can swap any of them through app.dependency_overrides.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Generator, Optional

from supportbot.config import Settings
from supportbot.services.chat import ChatService
from supportbot.services.conversation_lock import ConversationLock
from supportbot.services.llm import LLMService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency to get a database session from the app's Database.

    Usage:
        @router.get("/history/{session_id}")
        def history(session_id: str, db: Session = Depends(get_db)):
            ...
    """
    db = request.app.state.database.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_llm_service(request: Request) -> Optional[LLMService]:
    """The model client, or None when no credential was configured at startup."""
    return request.app.state.llm_service


def get_conversation_lock(request: Request) -> ConversationLock:
    return request.app.state.conversation_lock


def get_chat_service(
    db: Session = Depends(get_db),
    llm_service: Optional[LLMService] = Depends(get_llm_service),
    conversation_lock: ConversationLock = Depends(get_conversation_lock),
    settings: Settings = Depends(get_app_settings)
) -> ChatService:
    return ChatService(
        db,
        llm_service,
        conversation_lock=conversation_lock,
        context_limit=settings.context_limit
    )
