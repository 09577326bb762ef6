"""Chat endpoints.

- POST /chat/start: new session with the welcome message
- POST /chat/message: send a message, get the assistant's reply
- GET /chat/history/{session_id}: full transcript for resuming a session
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from supportbot.dependencies import get_chat_service, get_app_settings
from supportbot.config import Settings
from supportbot.knowledge import ERROR_REPLY
from supportbot.schemas.chat import ChatRequest, ChatResponse, HistoryResponse, MessageOut
from supportbot.middleware.logging import get_logger
from supportbot.services.chat import ChatService, ServiceNotConfigured
from supportbot.services.conversation_lock import ConversationBusy
from supportbot.services.input_guard import InputRejected, guard_message, guard_session_id

router = APIRouter()
logger = get_logger()


def validation_error(e: InputRejected) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": e.errors})


@router.post("/chat/start", response_model=ChatResponse, response_model_exclude_none=True)
async def start_conversation(chat_service: ChatService = Depends(get_chat_service)):
    """Start a new conversation and return the welcome message with its session ID."""
    try:
        result = chat_service.start_new_conversation()
    except SQLAlchemyError as e:
        chat_service.db.rollback()
        logger.error("start_conversation_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"error": "Failed to start conversation"})

    logger.info("conversation_started", session_id=str(result.session_id))
    return ChatResponse(reply=result.reply, session_id=result.session_id)


@router.post("/chat/message", response_model=ChatResponse, response_model_exclude_none=True)
async def send_message(
    chat_request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
    settings: Settings = Depends(get_app_settings)
):
    """
    Send a message and get the AI reply.

    Unknown or expired session IDs are replaced by a new session; clients
    must keep the sessionId from the response.

    Example:
        POST /chat/message {"message": "Do you ship to Pune?"}
        -> {"reply": "Yes, we ship pan-India...", "sessionId": "uuid"}
    """
    raw_session_id = chat_request.session_id or ""

    try:
        guarded = guard_message(chat_request.message, settings.max_message_length)
        session_id = guard_session_id(chat_request.session_id)
    except InputRejected as e:
        logger.info("chat_request_rejected", errors=e.errors)
        return validation_error(e)

    logger.info(
        "chat_request_received",
        session_id=str(session_id) if session_id else None,
        message_length=len(guarded.message),
        truncated=guarded.truncated
    )

    try:
        result = await chat_service.handle_message(
            guarded.message,
            session_id=session_id,
            truncated=guarded.truncated
        )
    except ServiceNotConfigured as e:
        return JSONResponse(status_code=503, content={"error": str(e), "sessionId": raw_session_id})
    except ConversationBusy:
        return JSONResponse(
            status_code=409,
            content={"error": "Another message is still being answered", "sessionId": raw_session_id}
        )
    except SQLAlchemyError as e:
        chat_service.db.rollback()
        logger.error("chat_message_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process message", "reply": ERROR_REPLY, "sessionId": raw_session_id}
        )

    return ChatResponse(reply=result.reply, session_id=result.session_id, error=result.error)


@router.get("/chat/history/{session_id}", response_model=HistoryResponse)
async def get_history(session_id: str, chat_service: ChatService = Depends(get_chat_service)):
    """Return every message of a session, oldest first."""
    try:
        conversation_id = guard_session_id(session_id)
    except InputRejected as e:
        return validation_error(e)

    try:
        history = chat_service.get_history(conversation_id)
    except SQLAlchemyError as e:
        logger.error("chat_history_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch conversation history"})

    if history is None:
        return JSONResponse(status_code=404, content={"error": "Conversation not found"})

    return HistoryResponse(
        messages=[MessageOut.model_validate(msg) for msg in history.messages],
        session_id=history.session_id
    )
