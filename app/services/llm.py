# =============================================================================
# Multi-Provider LLM Abstraction — Pluggable Generative Backend
# =============================================================================
#
# Provides a common interface for LLM completions, with concrete
# implementations for Anthropic (Claude) and OpenAI-compatible APIs
# (OpenAI, Gemini via its OpenAI endpoint, DeepSeek, Qwen, ...).
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Matches the VectorStore pattern in vectorstore.py. Any class with
# `complete()` and `ping()` works, which keeps test doubles trivial.
#
# DESIGN DECISION: Native SDKs over LangChain wrappers.
# Using the anthropic and openai SDKs directly gives direct control over
# request parameters and timeouts, and one less translation layer to debug.
#
# DESIGN DECISION: Per-call timeout on the SDK client.
# The /query endpoint has a 30s wall clock. The generation call gets its
# own shorter budget (llm_timeout_seconds) so a slow model surfaces as a
# GenerationFailure and the fallback answer, not a 504.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — Claude via native Anthropic SDK
#   ├── OpenAICompatibleProvider — Any OpenAI-compatible API
#   └── get_llm_provider()       — Factory, singleton for the module settings
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from app.config import Settings, settings

logger = logging.getLogger(__name__)

PING_PROMPT = "Hello"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    Normalises the different response formats (Anthropic vs OpenAI)
    into a single structure that downstream code can consume.
    """

    content: str           # The generated text
    model: str             # Model identifier (e.g., "claude-sonnet-4-6")
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the LLM provider interface.

    `complete()` is the generation call used by the answer generator;
    `ping()` is the cheap liveness call used by the health probe.
    """

    @property
    def model(self) -> str:
        ...

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation messages as dicts with "role" and "content".
                Roles: "user", "assistant" (no "system" — use the system param).
            system: System prompt for the LLM. Handled differently per provider:
                - Anthropic: top-level `system=` kwarg
                - OpenAI: prepended as {"role": "system", ...} message
            temperature: Override sampling temperature (default from config).
            max_tokens: Override max output tokens (default from config).

        Returns:
            LLMResponse with generated text and usage metrics.
        """
        ...

    async def ping(self) -> bool:
        """Issue a trivial completion. Raises if the backend is unreachable."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg, NOT as a message with role "system". This is the
    opposite of OpenAI's pattern and a common source of bugs.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        config: Settings | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        config = config or settings
        resolved_key = api_key or config.llm_api_key or config.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(
            api_key=resolved_key,
            timeout=timeout or config.llm_timeout_seconds,
        )
        self._model = model or config.llm_model
        self._temperature = config.llm_temperature
        self._max_tokens = config.llm_max_tokens

        logger.info(
            "Initialized AnthropicProvider (model=%s)", self._model
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }

        # Anthropic: system prompt is a top-level kwarg, not a message
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)

        # Extract text from the first content block
        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text
                break

        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def ping(self) -> bool:
        await self.complete(
            [{"role": "user", "content": PING_PROMPT}], max_tokens=8,
        )
        return True


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible (OpenAI, Gemini, DeepSeek, etc.)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    OpenAI-compatible provider for any API that follows the OpenAI spec.

    Switching providers is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://generativelanguage.googleapis.com/v1beta/openai/
        LLM_API_KEY=your-key
        LLM_MODEL=gemini-2.5-flash
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        config: Settings | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        config = config or settings
        resolved_key = api_key or config.llm_api_key or config.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {
            "api_key": resolved_key,
            "timeout": timeout or config.llm_timeout_seconds,
        }
        resolved_base_url = base_url or config.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or config.llm_model
        self._temperature = config.llm_temperature
        self._max_tokens = config.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=all_messages,
            max_tokens=max_tokens or self._max_tokens,
            temperature=(
                temperature if temperature is not None else self._temperature
            ),
        )

        content = response.choices[0].message.content or ""

        # Token counts: OpenAI uses different field names than Anthropic
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        return LLMResponse(
            content=content,
            model=response.model or self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def ping(self) -> bool:
        await self.complete(
            [{"role": "user", "content": PING_PROMPT}], max_tokens=8,
        )
        return True


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — avoid re-creating client on every request
_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider(
    config: Settings | None = None,
) -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Factory that returns the configured LLM provider.

    Reads `llm_provider` from `config` (default: the module settings):
    - "anthropic" → AnthropicProvider (Claude)
    - "openai_compatible" → OpenAICompatibleProvider (OpenAI, Gemini, etc.)

    DESIGN DECISION: Lazy singleton for the module settings. The SDK clients
    manage their own connection pools and are safe to share across
    concurrent requests. An explicit `config` gets its own uncached provider.

    Raises:
        ValueError: If the selected provider has no API key configured.
    """
    if config is not None and config is not settings:
        return _build_provider(config)

    global _provider
    if _provider is None:
        _provider = _build_provider(settings)
    return _provider


def _build_provider(
    config: Settings,
) -> AnthropicProvider | OpenAICompatibleProvider:
    if config.llm_provider == "openai_compatible":
        return OpenAICompatibleProvider(config=config)
    return AnthropicProvider(config=config)
