"""Health check endpoints."""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from typing import Optional

from supportbot.dependencies import get_db, get_llm_service, get_conversation_lock
from supportbot.services.conversation_lock import ConversationLock
from supportbot.services.llm import LLMService

router = APIRouter()


@router.get("/health")
@router.head("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "service": "supportbot-backend"}


@router.get("/chat/health")
async def chat_health(llm_service: Optional[LLMService] = Depends(get_llm_service)):
    """Report whether chat replies can be generated."""
    llm_configured = llm_service is not None
    body = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "llmConfigured": llm_configured,
    }
    if not llm_configured:
        body["warning"] = "OpenAI API key not configured"
    return body


@router.get("/health/detailed")
async def detailed_health_check(
    db: Session = Depends(get_db),
    conversation_lock: ConversationLock = Depends(get_conversation_lock)
):
    """
    Detailed health check including database and Redis connectivity.

    Redis is reported as "disabled" when no REDIS_URL is configured.
    """
    checks = {
        "api": "healthy",
        "database": "unknown",
        "redis": "disabled"
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Check Redis
    if conversation_lock.enabled:
        try:
            await conversation_lock.redis.ping()
            checks["redis"] = "healthy"
        except Exception as e:
            checks["redis"] = f"unhealthy: {str(e)}"

    # Overall status
    overall_status = "healthy" if all(
        v in ("healthy", "disabled") for v in checks.values()
    ) else "degraded"

    return {
        "status": overall_status,
        "checks": checks
    }
