# =============================================================================
# Embedding Service — Query Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates query embeddings using any OpenAI-compatible embedding API.
# The knowledge retriever receives `embed_query` as an injected dependency,
# so tests and alternative models can swap in any `async (str) -> list[float]`.
#
# DESIGN DECISION: OpenAI SDK with configurable base_url.
# The OpenAI SDK is the de facto standard. Most providers expose
# OpenAI-compatible embedding endpoints, so one client covers them all.
#
# DESIGN DECISION: Sync client behind asyncio.to_thread().
# The sync OpenAI client is thread-safe and pools its connections. Running
# it in a worker thread keeps the event loop free during the HTTP call.
#
# DIMENSIONS:
# The knowledge base was indexed with 768-dimensional vectors, so every
# query embedding must be requested at embedding_dimensions (768).
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from openai import OpenAI

from app.config import Settings, settings

logger = logging.getLogger(__name__)

EmbedFunction = Callable[[str], Awaitable[list[float]]]


# ---------------------------------------------------------------------------
# Embedding Client — Lazy Singleton
# ---------------------------------------------------------------------------
# DESIGN DECISION: API key resolution order:
#   1. OPENAI_API_KEY (explicit embedding key)
#   2. LLM_API_KEY (shared key for an OpenAI-compatible LLM provider)
# ---------------------------------------------------------------------------

_client: OpenAI | None = None


def _build_client(config: Settings) -> OpenAI:
    resolved_key = config.openai_api_key or config.llm_api_key
    if not resolved_key:
        raise ValueError(
            "No API key configured for embeddings. "
            "Set OPENAI_API_KEY or LLM_API_KEY in .env"
        )

    client_kwargs: dict = {
        "api_key": resolved_key,
        "timeout": config.vector_search_timeout_seconds,
    }
    if config.embedding_base_url:
        client_kwargs["base_url"] = config.embedding_base_url

    logger.info(
        "Initialized embedding client (model=%s, base_url=%s)",
        config.embedding_model,
        config.embedding_base_url or "https://api.openai.com/v1",
    )
    return OpenAI(**client_kwargs)


def _get_client() -> OpenAI:
    """Lazily initialize and cache the embedding client."""
    global _client
    if _client is None:
        _client = _build_client(settings)
    return _client


def _create_embedding(client: OpenAI, config: Settings, text: str) -> list[float]:
    create_kwargs: dict = {
        "model": config.embedding_model,
        "input": [text],
    }
    if config.embedding_dimensions:
        create_kwargs["dimensions"] = config.embedding_dimensions

    response = client.embeddings.create(**create_kwargs)

    logger.debug(
        "Embedded query (%d chars, %d prompt tokens)",
        len(text),
        response.usage.prompt_tokens if response.usage else 0,
    )
    return response.data[0].embedding


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def embed_query_sync(text: str) -> list[float]:
    """
    Generate an embedding for a single query string.

    Raises:
        ValueError: If no embedding API key is configured.
        openai.APIError: If the embedding API call fails.
    """
    return _create_embedding(_get_client(), settings, text)


async def embed_query(text: str) -> list[float]:
    """Async wrapper: runs the sync client in a worker thread."""
    return await asyncio.to_thread(embed_query_sync, text)


def make_embed_function(config: Settings | None = None) -> EmbedFunction:
    """
    Bind an embedding function to `config`.

    The module settings reuse the shared client behind embed_query. Any
    other config gets its own client, created on first use so a missing
    key surfaces as a retrieval failure rather than at startup.
    """
    if config is None or config is settings:
        return embed_query

    client: OpenAI | None = None

    def _embed_sync(text: str) -> list[float]:
        nonlocal client
        if client is None:
            client = _build_client(config)
        return _create_embedding(client, config, text)

    async def embed(text: str) -> list[float]:
        return await asyncio.to_thread(_embed_sync, text)

    return embed
