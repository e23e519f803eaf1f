"""Text generator backends.

Every backend speaks the same small contract: take system and user
instructions plus the conversation so far, return the reply text and whether
the model paused mid-turn (still searching) and expects a continuation.

Provider selection follows ``settings.generation.model_provider``:
"anthropic" (default, supports live web search), "google" or "openrouter"
(through pydantic-ai).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from anthropic import AsyncAnthropic, RateLimitError
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError

from app.core.config import settings
from app.core.logging import get_logger
from app.modules.llm.errors import RateLimited


logger = get_logger(__name__)

WEB_SEARCH_TOOL = "web_search_20250305"
TERMINAL_STOP_REASONS = ("end_turn", "max_tokens", "stop_sequence")


@dataclass
class GeneratorRequest:
    system: str
    user: str
    max_tokens: int = 4096
    temperature: float = 0.7
    # Number of web searches the model may run; None disables the tool
    max_searches: Optional[int] = None


@dataclass
class GeneratorReply:
    text: str
    paused: bool = False
    # Provider-native content to echo back when continuing a paused turn
    content: Any = None
    stop_reason: Optional[str] = None


class TextGenerator(ABC):
    @abstractmethod
    async def complete(
        self, request: GeneratorRequest, messages: list[dict[str, Any]]
    ) -> GeneratorReply:
        """Run one model turn over ``messages`` (role/content dicts)."""


def _retry_after_seconds(response: Optional[httpx.Response]) -> Optional[float]:
    if response is None:
        return None
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class AnthropicGenerator(TextGenerator):
    """Claude Messages API, with the server-side web search tool when asked."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        cfg = settings.generation
        self.model = model or cfg.anthropic_model
        self.client = AsyncAnthropic(
            api_key=api_key or cfg.anthropic_api_key,
            timeout=httpx.Timeout(timeout_seconds or cfg.request_timeout_seconds, connect=30.0),
            # Rate limiting is handled by RetryPolicy
            max_retries=0,
        )

    async def complete(
        self, request: GeneratorRequest, messages: list[dict[str, Any]]
    ) -> GeneratorReply:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "system": request.system,
            "messages": messages,
        }
        if request.max_searches:
            kwargs["tools"] = [
                {
                    "type": WEB_SEARCH_TOOL,
                    "name": "web_search",
                    "max_uses": request.max_searches,
                }
            ]

        try:
            response = await self.client.messages.create(**kwargs)
        except RateLimitError as e:
            raise RateLimited(str(e), retry_after=_retry_after_seconds(e.response)) from e

        text = "".join(b.text for b in response.content if b.type == "text")
        stop_reason = response.stop_reason
        paused = stop_reason == "pause_turn"
        if not paused and stop_reason not in TERMINAL_STOP_REASONS:
            logger.warning(f"Unexpected stop_reason {stop_reason!r}; using reply as final")
        return GeneratorReply(
            text=text, paused=paused, content=response.content, stop_reason=stop_reason
        )


class PydanticAIGenerator(TextGenerator):
    """Plain text completion through a pydantic-ai model. Never pauses."""

    def __init__(self, model):
        self.model = model

    async def complete(
        self, request: GeneratorRequest, messages: list[dict[str, Any]]
    ) -> GeneratorReply:
        if request.max_searches:
            logger.debug("Search budget ignored; provider has no live search tool")
        agent: Agent[None, str] = Agent[None, str](
            model=self.model,
            output_type=str,
            system_prompt=request.system,
        )
        prompt = messages[-1]["content"] if messages else request.user
        try:
            res = await agent.run(
                prompt,
                model_settings={
                    "max_tokens": request.max_tokens,
                    "temperature": request.temperature,
                },
            )
        except ModelHTTPError as e:
            if e.status_code == 429:
                raise RateLimited(str(e)) from e
            raise
        return GeneratorReply(text=res.output, stop_reason="end_turn")


def _build_google_model():
    """Build Google Gemini model for pydantic-ai (lazy import)."""
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    cfg = settings.generation
    provider = GoogleProvider(api_key=cfg.gemini_api_key)
    return GoogleModel(cfg.gemini_model, provider=provider)


def _build_openrouter_model():
    """Build OpenRouter model via OpenAI-compatible provider (lazy import)."""
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    cfg = settings.generation
    if not cfg.openrouter_api_key:
        raise RuntimeError(
            "OpenRouter API key not configured. Set OPENROUTER_API_KEY in your environment."
        )

    provider = OpenAIProvider(
        api_key=cfg.openrouter_api_key,
        base_url="https://openrouter.ai/api/v1",
    )
    return OpenAIChatModel(cfg.openrouter_model, provider=provider)


def build_generator_by_settings() -> TextGenerator:
    provider = (settings.generation.model_provider or "anthropic").lower()
    if provider == "openrouter":
        return PydanticAIGenerator(_build_openrouter_model())
    if provider == "google":
        return PydanticAIGenerator(_build_google_model())
    if not settings.generation.anthropic_api_key:
        raise RuntimeError(
            "Anthropic API key not configured. Set ANTHROPIC_API_KEY in your environment."
        )
    return AnthropicGenerator()
