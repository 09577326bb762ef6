"""Per-conversation serialization of chat exchanges.

Two messages submitted at nearly the same time on one session would
otherwise read the same context window and interleave their replies.
Uses a Redis lock so the guarantee holds across multiple workers, and the
asyncio client so waiting for a busy conversation never stalls the event loop.
"""
import redis.asyncio as aioredis
from redis.exceptions import LockError
from contextlib import asynccontextmanager
from typing import Optional
from uuid import UUID

from supportbot.middleware.logging import get_logger

logger = get_logger()


class ConversationBusy(Exception):
    """Raised when another exchange holds the conversation for too long."""
    pass


class ConversationLock:
    """Redis-based lock keyed by conversation id.

    Without a Redis client the lock is disabled and exchanges on the same
    conversation may interleave.
    """

    def __init__(
        self,
        redis_client: Optional[aioredis.Redis],
        timeout: int = 90,
        wait: float = 10.0
    ):
        self.redis = redis_client
        # Held locks expire after `timeout` seconds (safety net for crashed workers)
        self.timeout = timeout
        self.wait = wait

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    def _get_lock_key(self, conversation_id: UUID) -> str:
        return f"chat:lock:{conversation_id}"

    @asynccontextmanager
    async def hold(self, conversation_id: UUID):
        """
        Async context manager serializing work on one conversation.

        Usage:
            async with conversation_lock.hold(conversation.id):
                history = store.list_recent(conversation.id, 10)
                ...

        Raises:
            ConversationBusy: If the lock is not acquired within `wait` seconds
        """
        if self.redis is None:
            yield
            return

        lock = self.redis.lock(
            self._get_lock_key(conversation_id),
            timeout=self.timeout,
            blocking_timeout=self.wait
        )
        if not await lock.acquire():
            logger.warning("conversation_busy", conversation_id=str(conversation_id), wait_seconds=self.wait)
            raise ConversationBusy(f"Conversation {conversation_id} is busy")

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; another worker may own it now
                logger.warning("conversation_lock_expired", conversation_id=str(conversation_id))

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()


def build_conversation_lock(
    redis_url: Optional[str],
    timeout: int = 90,
    wait: float = 10.0
) -> ConversationLock:
    """Create the lock from a Redis URL, or a disabled lock when none is configured."""
    redis_client = aioredis.from_url(redis_url) if redis_url else None
    return ConversationLock(redis_client, timeout=timeout, wait=wait)
