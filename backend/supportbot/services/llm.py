"""LLM service for support replies."""
import asyncio
import time
from typing import Dict, List, Optional

import httpx
import openai

from supportbot.config import Settings
from supportbot.middleware.logging import get_logger

logger = get_logger()


class LLMError(Exception):
    """Model call failed. `category` selects the fallback text shown to the customer."""

    category = "unknown"


class LLMRateLimited(LLMError):
    category = "rate_limited"


class LLMUnauthorized(LLMError):
    category = "unauthorized"


class LLMUnavailable(LLMError):
    category = "unavailable"


class LLMTimeout(LLMError):
    category = "timeout"


def classify_error(error: Exception) -> LLMError:
    """Translate an OpenAI client exception into an LLMError."""
    # APITimeoutError subclasses APIConnectionError, check it first
    if isinstance(error, (openai.APITimeoutError, asyncio.TimeoutError)):
        return LLMTimeout("Model call timed out")
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimited("Rate limited by provider")
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return LLMUnauthorized("Provider rejected the credential")
    if isinstance(error, openai.InternalServerError):
        return LLMUnavailable(f"Provider returned {error.status_code}")
    if isinstance(error, openai.APIConnectionError):
        return LLMUnavailable("Could not reach provider")
    if isinstance(error, openai.APIStatusError):
        return LLMError(f"Provider returned {error.status_code}")
    return LLMError(f"Unexpected model error: {type(error).__name__}")


class LLMService:
    """Service for chat completions against the OpenAI API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 500,
        temperature: float = 0.7,
        timeout: float = 30.0
    ):
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=httpx.Timeout(timeout, connect=5.0),
            max_retries=0
        )
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    async def generate_reply(self, messages: List[Dict[str, str]]) -> str:
        """
        Get a single non-streaming completion.

        Args:
            messages: List of message dicts with 'role' and 'content',
                system prompt first and the new user message last

        Returns:
            Reply text with surrounding whitespace removed

        Raises:
            LLMError: Categorized failure (see subclasses)
        """
        start_time = time.time()

        try:
            async with asyncio.timeout(self.timeout):
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature
                )
        except Exception as e:
            error = classify_error(e)
            logger.error(
                "llm_call_failed",
                model=self.model,
                category=error.category,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_time) * 1000)
            )
            raise error from e

        reply = response.choices[0].message.content if response.choices else None
        if not reply or not reply.strip():
            logger.error("llm_empty_response", model=self.model)
            raise LLMError("Empty response from model")

        usage = getattr(response, "usage", None)
        logger.info(
            "llm_call_completed",
            model=self.model,
            tokens_in=usage.prompt_tokens if usage else None,
            tokens_out=usage.completion_tokens if usage else None,
            latency_ms=int((time.time() - start_time) * 1000)
        )
        return reply.strip()

    async def close(self):
        await self.client.close()


def build_llm_service(settings: Settings) -> Optional[LLMService]:
    """Return a configured LLMService, or None when no API key is set."""
    if not settings.llm_configured:
        logger.warning("llm_not_configured", reason="OPENAI_API_KEY is not set")
        return None

    return LLMService(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
        timeout=settings.llm_response_timeout_seconds
    )
