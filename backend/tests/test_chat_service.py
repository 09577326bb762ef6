"""Tests for reply orchestration."""
import asyncio
import uuid
import pytest
from sqlalchemy.orm import Session
from unittest.mock import AsyncMock, MagicMock

from supportbot.knowledge import FALLBACK_MESSAGES, SYSTEM_PROMPT, TRUNCATION_NOTICE, WELCOME_MESSAGE
from supportbot.models import Conversation, MessageSender
from supportbot.services.chat import ChatService, ServiceNotConfigured
from supportbot.services.conversation_lock import ConversationLock, ConversationBusy
from supportbot.services.llm import LLMError, LLMRateLimited, LLMTimeout, LLMUnauthorized, LLMUnavailable
from conftest import FakeLLM, InMemoryLockRedis


def _send(service: ChatService, message: str, session_id=None, truncated=False):
    return asyncio.run(service.handle_message(message, session_id=session_id, truncated=truncated))


def test_first_message_creates_session_and_stores_both_turns(db: Session):
    llm = FakeLLM(reply="We have club and national team jerseys.")
    service = ChatService(db, llm)

    result = _send(service, "What jerseys do you have?")

    assert result.session_id is not None
    assert result.reply == "We have club and national team jerseys."
    assert result.error is None

    history = service.get_history(result.session_id)
    assert [(m.sender, m.content) for m in history.messages] == [
        (MessageSender.USER, "What jerseys do you have?"),
        (MessageSender.AI, "We have club and national team jerseys."),
    ]


def test_model_sees_system_prompt_history_and_new_message(db: Session):
    """Test that prior turns are sent in order and the new message is last."""
    llm = FakeLLM(reply="ok")
    service = ChatService(db, llm)
    session_id = service.start_new_conversation().session_id

    _send(service, "first question", session_id)
    _send(service, "second question", session_id)

    request = llm.calls[-1]
    assert request == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "assistant", "content": WELCOME_MESSAGE},
        {"role": "user", "content": "first question"},
        {"role": "assistant", "content": "ok"},
        {"role": "user", "content": "second question"},
    ]


def test_context_window_is_bounded_to_most_recent_messages(db: Session):
    """Test that only the last `context_limit` prior messages reach the model."""
    llm = FakeLLM(reply="ok")
    service = ChatService(db, llm, context_limit=10)
    session_id = _send(service, "question 0").session_id
    for i in range(1, 8):
        _send(service, f"question {i}", session_id)

    _send(service, "final question", session_id)

    prior = service.messages.list_all(session_id)[:-2]
    expected = [
        {"role": "user" if m.sender == MessageSender.USER else "assistant", "content": m.content}
        for m in prior[-10:]
    ]
    request = llm.calls[-1]
    assert len(request) == 12
    assert request[0]["role"] == "system"
    assert request[1:-1] == expected
    assert request[-1] == {"role": "user", "content": "final question"}
    assert sum(1 for turn in request if turn["content"] == "final question") == 1


def test_unknown_session_gets_new_conversation(db: Session):
    service = ChatService(db, FakeLLM())
    unknown = uuid.uuid4()

    result = _send(service, "Hello", unknown)

    assert result.session_id != unknown
    assert service.get_history(unknown) is None
    assert len(service.get_history(result.session_id).messages) == 2


@pytest.mark.parametrize("error", [
    LLMRateLimited("429"),
    LLMUnauthorized("401"),
    LLMUnavailable("503"),
    LLMTimeout("timeout"),
    LLMError("other"),
])
def test_model_failure_returns_fallback_and_keeps_user_message(db: Session, error):
    """Test that failures persist the user message but no ai message."""
    service = ChatService(db, FakeLLM(error=error))

    result = _send(service, "Where is my order?")

    assert result.reply == FALLBACK_MESSAGES[error.category]
    assert result.error == error.category

    messages = service.get_history(result.session_id).messages
    assert [(m.sender, m.content) for m in messages] == [(MessageSender.USER, "Where is my order?")]


def test_fallback_messages_are_distinct():
    assert len(set(FALLBACK_MESSAGES.values())) == len(FALLBACK_MESSAGES)


def test_truncated_message_gets_notice_without_model_call(db: Session):
    llm = FakeLLM()
    service = ChatService(db, llm)

    result = _send(service, "x" * 2000, truncated=True)

    assert result.reply == TRUNCATION_NOTICE
    assert llm.calls == []
    messages = service.get_history(result.session_id).messages
    assert [m.sender for m in messages] == [MessageSender.USER, MessageSender.AI]
    assert len(messages[0].content) == 2000


def test_not_configured_raises_before_storing_anything(db: Session):
    service = ChatService(db, None)

    with pytest.raises(ServiceNotConfigured):
        _send(service, "Hello")

    assert db.query(Conversation).count() == 0


def test_start_new_conversation_stores_welcome_only(db: Session):
    llm = FakeLLM()
    service = ChatService(db, llm)

    result = service.start_new_conversation()

    assert result.reply == WELCOME_MESSAGE
    assert llm.calls == []
    messages = service.get_history(result.session_id).messages
    assert len(messages) == 1
    assert messages[0].sender == MessageSender.AI
    assert messages[0].content == WELCOME_MESSAGE


def test_get_history_unknown_session(db: Session):
    assert ChatService(db, FakeLLM()).get_history(uuid.uuid4()) is None


def test_exchange_runs_under_conversation_lock(db: Session):
    mock_redis = MagicMock()
    mock_redis.lock.return_value.acquire = AsyncMock(return_value=True)
    mock_redis.lock.return_value.release = AsyncMock()
    service = ChatService(db, FakeLLM(), conversation_lock=ConversationLock(mock_redis))

    result = _send(service, "Hello")

    mock_redis.lock.assert_called_once()
    assert str(result.session_id) in mock_redis.lock.call_args.args[0]
    mock_redis.lock.return_value.release.assert_awaited_once()


def test_busy_conversation_stores_nothing_new(db: Session):
    mock_redis = MagicMock()
    mock_redis.lock.return_value.acquire = AsyncMock(return_value=False)
    llm = FakeLLM()
    service = ChatService(db, llm, conversation_lock=ConversationLock(mock_redis))
    session_id = service.start_new_conversation().session_id

    with pytest.raises(ConversationBusy):
        _send(service, "Hello", session_id)

    assert llm.calls == []
    assert len(service.get_history(session_id).messages) == 1


def test_concurrent_messages_on_one_session_are_serialized(db: Session):
    """Test that the second exchange waits for the first and sees its reply."""
    llm = FakeLLM(reply="ok", delay=0.05)
    lock = ConversationLock(InMemoryLockRedis(), wait=2.0)
    service = ChatService(db, llm, conversation_lock=lock)
    session_id = service.start_new_conversation().session_id

    async def send_both():
        return await asyncio.gather(
            service.handle_message("one", session_id=session_id),
            service.handle_message("two", session_id=session_id),
        )

    first, second = asyncio.run(send_both())

    assert (first.reply, first.error) == ("ok", None)
    assert (second.reply, second.error) == ("ok", None)
    assert second.session_id == first.session_id == session_id

    history = service.get_history(session_id)
    assert [m.content for m in history.messages] == [WELCOME_MESSAGE, "one", "ok", "two", "ok"]

    assert len(llm.calls) == 2
    second_context = [m["content"] for m in llm.calls[1]]
    assert second_context[-3:] == ["one", "ok", "two"]
