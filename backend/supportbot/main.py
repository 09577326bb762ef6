"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

from supportbot.config import Settings, get_settings
from supportbot.database import Database
from supportbot.middleware.logging import LoggingMiddleware, configure_logging, get_logger
from supportbot.api import chat, health
from supportbot.services.conversations import ConversationService
from supportbot.services.conversation_lock import build_conversation_lock
from supportbot.services.llm import build_llm_service

logger = get_logger()


def purge_expired_conversations(database: Database, retention_days: int) -> int:
    """Delete conversations idle for longer than the retention window."""
    if retention_days <= 0:
        return 0

    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    with database.session() as db:
        return ConversationService(db).purge_older_than(cutoff)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    settings: Settings = app.state.settings

    # Startup
    database = Database(settings.database_url, echo=settings.debug)
    database.create_all()
    logger.info("Database tables verified/created on startup")

    purge_expired_conversations(database, settings.conversation_retention_days)

    app.state.database = database
    app.state.llm_service = build_llm_service(settings)
    app.state.conversation_lock = build_conversation_lock(
        settings.redis_url,
        timeout=settings.conversation_lock_timeout,
        wait=settings.conversation_lock_wait
    )
    logger.info(
        "startup_complete",
        llm_configured=app.state.llm_service is not None,
        conversation_lock=app.state.conversation_lock.enabled
    )

    yield  # App runs here

    # Shutdown
    if app.state.llm_service is not None:
        await app.state.llm_service.close()
    await app.state.conversation_lock.close()
    database.dispose()
    logger.info("Shutting down support agent")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Tests pass their own Settings."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Customer support chat for the 11Yards storefront",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )
    app.state.settings = settings

    # CORS middleware - Allow frontend origins
    allowed_origins = [
        "http://localhost:5173",  # Local development
        "http://localhost:3000",  # Alternative local port
        settings.frontend_url,     # Production frontend
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trace-ID"]
    )

    # Logging middleware
    app.add_middleware(LoggingMiddleware)

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(chat.router, tags=["chat"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": "1.0.0",
            "docs": "/docs" if settings.debug else "disabled",
            "endpoints": {
                "health": "GET /chat/health",
                "message": "POST /chat/message",
                "history": "GET /chat/history/{sessionId}",
                "start": "POST /chat/start"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("supportbot.main:app", host=_settings.host, port=_settings.port)
