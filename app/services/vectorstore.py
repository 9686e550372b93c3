# =============================================================================
# Vector Store Abstraction — Pluggable Backend Protocol
# =============================================================================
#
# Provides a common interface for top-K vector similarity search over the
# knowledge base, with concrete implementations for Qdrant and ChromaDB.
#
# DESIGN DECISION: Protocol (structural typing) over ABC (nominal typing).
# Any class with the right methods can be used without inheritance, so
# tests can pass a small fake that matches the protocol.
#
# DESIGN DECISION: Backends return raw hits, not documents.
# A VectorHit is (id, score, payload) exactly as the backend reports it.
# Mapping payload keys into RetrievedDocument fields is the retriever's job,
# which keeps payload schema drift out of the backends.
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── QdrantVectorStore — Qdrant server (AsyncQdrantClient)
#   │   ├── search()            — query_points, payload on, vectors off
#   │   └── collection_status() — "green" | "yellow" | "red" | ...
#   └── ChromaVectorStore — ChromaDB (in-process or client/server)
#       ├── search()            — async via asyncio.to_thread() wrapper
#       └── collection_status() — "green" when the collection answers
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import chromadb
from qdrant_client import AsyncQdrantClient

from app.config import Settings, settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorHit:
    """One raw hit from a similarity search, in backend ranking order."""

    id: str
    score: float  # backend-defined similarity, higher = more relevant
    payload: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """
    Protocol defining the vector store interface.

    Both Qdrant and ChromaDB implementations provide these methods.
    """

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[VectorHit]:
        """
        Find the most similar passages to the query vector.

        Returns:
            Hits sorted by similarity (highest first), payload included,
            raw vectors excluded.
        """
        ...

    async def collection_status(self) -> str:
        """Backend health flag for the collection ("green" when ready)."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Qdrant
# ---------------------------------------------------------------------------


class QdrantVectorStore:
    """
    Qdrant-backed vector store.

    The knowledge base is loaded into Qdrant out of band; this class only
    reads from it.
    """

    def __init__(
        self,
        url: str | None = None,
        collection: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        self.collection_name = collection or settings.qdrant_collection
        self._client = client or AsyncQdrantClient(
            url=url or settings.qdrant_url,
            api_key=api_key or settings.qdrant_api_key,
            timeout=int(timeout or settings.vector_search_timeout_seconds),
        )
        logger.info(
            "Initialized QdrantVectorStore (collection=%s)", self.collection_name,
        )

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[VectorHit]:
        response = await self._client.query_points(
            collection_name=self.collection_name,
            query=query_embedding,
            limit=top_k,
            with_payload=True,
            with_vectors=False,
        )

        logger.debug(
            "Qdrant returned %d points (top_k=%d)", len(response.points), top_k,
        )
        return [
            VectorHit(
                id=str(point.id),
                score=float(point.score or 0.0),
                payload=dict(point.payload or {}),
            )
            for point in response.points
        ]

    async def collection_status(self) -> str:
        info = await self._client.get_collection(
            collection_name=self.collection_name,
        )
        # CollectionStatus is a str enum
        return getattr(info.status, "value", str(info.status))


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed vector store.

    ChromaDB supports both in-process and client/server modes:
    - In-process (default): No extra infra, data stored in memory/disk
    - Client/server: Set CHROMA_URL for Docker deployment

    Read-only, like the Qdrant store: the collection is loaded out of band.
    Hits carry {"content": document, **metadata} as their payload so they
    have the same shape as Qdrant's.
    """

    def __init__(
        self,
        collection: str | None = None,
        chroma_url: str | None = None,
    ) -> None:
        url = chroma_url or settings.chroma_url
        if url:
            # Client/server mode (e.g., Docker deployment)
            self._client = chromadb.HttpClient(host=url)
        else:
            # In-process mode (local development, testing)
            self._client = chromadb.Client()

        # Cosine distance so that 1 - distance is a similarity score
        self.collection_name = collection or settings.qdrant_collection
        self._collection = self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[VectorHit]:
        """
        Similarity search in ChromaDB.

        DESIGN DECISION: ChromaDB's Python client is synchronous.
        We wrap it in asyncio.to_thread() to avoid blocking the
        FastAPI event loop during search.
        """

        def _sync_search() -> list[VectorHit]:
            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=top_k,
                include=["documents", "metadatas", "distances"],
            )

            hits: list[VectorHit] = []
            if results and results["ids"] and results["ids"][0]:
                for i, chroma_id in enumerate(results["ids"][0]):
                    distance = (
                        results["distances"][0][i]
                        if results["distances"]
                        else 0.0
                    )
                    metadata = (
                        dict(results["metadatas"][0][i] or {})
                        if results["metadatas"]
                        else {}
                    )
                    content = (
                        results["documents"][0][i]
                        if results["documents"]
                        else ""
                    )
                    hits.append(VectorHit(
                        id=chroma_id,
                        # Cosine distance is in [0, 2]; convert to similarity
                        score=round(1.0 - distance, 4),
                        payload={"content": content, **metadata},
                    ))
            return hits

        return await asyncio.to_thread(_sync_search)

    async def collection_status(self) -> str:
        await asyncio.to_thread(self._collection.count)
        return "green"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_vector_store(
    config: Settings | None = None,
) -> QdrantVectorStore | ChromaVectorStore:
    """
    Factory that returns the configured vector store backend.

    Reads `vectorstore_type` from settings:
    - "qdrant" → QdrantVectorStore (default)
    - "chroma" → ChromaVectorStore (lightweight, no server needed)
    """
    config = config or settings

    if config.vectorstore_type == "chroma":
        logger.info("Using ChromaDB vector store")
        return ChromaVectorStore(
            collection=config.qdrant_collection,
            chroma_url=config.chroma_url,
        )

    logger.info("Using Qdrant vector store")
    return QdrantVectorStore(
        url=config.qdrant_url,
        collection=config.qdrant_collection,
        api_key=config.qdrant_api_key,
        timeout=config.vector_search_timeout_seconds,
    )

