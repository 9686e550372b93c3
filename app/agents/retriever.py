# =============================================================================
# Knowledge Retriever — Top-K Vector Search over the Local Knowledge Base
# =============================================================================
#
# Embeds the query with an injected embedding function and runs a top-K
# similarity search against the configured vector store, mapping raw hits
# into RetrievedDocument in backend ranking order.
#
# DESIGN DECISION: Embedding function is injected.
# The retriever takes any `async (str) -> list[float]`. Production wires in
# app.services.embedder.embed_query; tests pass a stub. The retriever never
# computes vectors itself.
#
# DESIGN DECISION: One timeout for embed + search together.
# `timeout` bounds the whole retrieval stage, not each call, so a slow
# embedding API and a slow vector store cannot add up to twice the budget.
#
# FAILURE CONTRACT:
#   retrieve()  — any embedding/backend error becomes RetrievalFailure.
#                 The orchestrator treats it as "no local documents".
#   is_ready()  — never raises; any backend error means "not ready".
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from app.agents.errors import RetrievalFailure
from app.services.embedder import EmbedFunction
from app.services.vectorstore import VectorHit, VectorStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class RetrievedDocument:
    """One passage from the vector index."""

    id: str
    content: str
    score: float  # backend similarity, 0.0–1.0, higher = more relevant
    source: str = "unknown"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievalResult:
    """Ranked passages for one query (highest score first)."""

    documents: list[RetrievedDocument]
    total_found: int
    query: str
    search_time_ms: float


def document_from_hit(hit: VectorHit) -> RetrievedDocument:
    """
    Adapter from a raw backend hit.

    Payload keys: "content" (or "text"), "metadata" (a mapping, or absent,
    in which case the remaining payload keys are used) and "source".
    """
    payload = hit.payload
    content = payload.get("content") or payload.get("text") or ""
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {
            k: v for k, v in payload.items()
            if k not in ("content", "text", "source", "metadata")
        }
    return RetrievedDocument(
        id=hit.id,
        content=str(content),
        score=hit.score,
        source=str(payload.get("source") or "unknown"),
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# Retriever
# ---------------------------------------------------------------------------


class KnowledgeRetriever:
    """Vector search over the institution's knowledge base."""

    name = "Knowledge Retriever"
    description = "Retrieves relevant passages from the local vector knowledge base"

    def __init__(
        self,
        store: VectorStore,
        embed: EmbedFunction,
        top_k: int = 5,
        timeout: float = 10.0,
    ) -> None:
        self.store = store
        self.embed = embed
        self.top_k = top_k
        self.timeout = timeout

    async def retrieve(self, query: str) -> RetrievalResult:
        logger.info("Retrieving documents for '%s' (top_k=%d)", query[:80], self.top_k)
        start = time.perf_counter()

        try:
            hits = await asyncio.wait_for(self._search(query), self.timeout)
        except asyncio.TimeoutError as exc:
            raise RetrievalFailure("vector search timed out") from exc
        except Exception as exc:
            raise RetrievalFailure(f"vector search failed: {exc}") from exc

        documents = [document_from_hit(hit) for hit in hits]
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("Retrieved %d documents in %.0fms", len(documents), elapsed_ms)

        return RetrievalResult(
            documents=documents,
            total_found=len(documents),
            query=query,
            search_time_ms=elapsed_ms,
        )

    async def _search(self, query: str) -> list[VectorHit]:
        vector = await self.embed(query)
        return await self.store.search(vector, top_k=self.top_k)

    async def is_ready(self) -> bool:
        """True when the collection reports "green". Never raises."""
        try:
            status = await asyncio.wait_for(
                self.store.collection_status(), self.timeout,
            )
        except Exception as exc:
            logger.warning("Collection status check failed: %s", exc)
            return False
        return status == "green"
