"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "11Yards Support Agent"
    debug: bool = False
    log_level: str = "INFO"

    # Network endpoint
    host: str = "0.0.0.0"
    port: int = 3001

    # Database
    database_url: str = "sqlite:///./chat.db"

    # Redis (optional) - enables per-conversation locking when set
    redis_url: Optional[str] = None
    conversation_lock_timeout: int = 90  # seconds before a held lock expires
    conversation_lock_wait: float = 10.0  # seconds to wait for a busy conversation

    # OpenAI - chat replies are disabled until a key is provided
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7
    llm_response_timeout_seconds: float = 30.0

    # Conversation limits
    context_limit: int = 10  # prior messages sent to the model per reply
    max_message_length: int = 2000  # characters, longer input is truncated
    conversation_retention_days: int = 0  # 0 keeps conversations forever

    # CORS
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
