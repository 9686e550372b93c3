# =============================================================================
# Unit Tests — Knowledge Retriever
# =============================================================================
#
# The vector store and the embedding function are mocks, so these tests
# exercise hit mapping, ordering and the failure contract only.
# =============================================================================

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from app.agents.errors import RetrievalFailure
from app.agents.retriever import KnowledgeRetriever, document_from_hit
from app.services.vectorstore import VectorHit


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _store(hits=None, error=None, status="green"):
    store = AsyncMock()
    if error is not None:
        store.search.side_effect = error
    else:
        store.search.return_value = hits or []
    store.collection_status.return_value = status
    return store


class TestDocumentFromHit:
    def test_content_metadata_and_source(self):
        hit = VectorHit(
            id="1", score=0.9,
            payload={"content": "Nehru Hall", "source": "halls.md", "metadata": {"hall": "NH"}},
        )
        doc = document_from_hit(hit)
        assert doc.content == "Nehru Hall"
        assert doc.source == "halls.md"
        assert doc.metadata == {"hall": "NH"}
        assert doc.score == 0.9

    def test_text_key_and_flat_metadata(self):
        doc = document_from_hit(VectorHit(id="2", score=0.4, payload={"text": "Mess", "page": 3}))
        assert doc.content == "Mess"
        assert doc.source == "unknown"
        assert doc.metadata == {"page": 3}

    def test_empty_payload(self):
        doc = document_from_hit(VectorHit(id="3", score=0.1, payload={}))
        assert doc.content == ""
        assert doc.metadata == {}


class TestKnowledgeRetriever:
    def test_retrieve_keeps_backend_order(self):
        hits = [
            VectorHit(id="a", score=0.92, payload={"content": "first"}),
            VectorHit(id="b", score=0.71, payload={"content": "second"}),
        ]
        store = _store(hits)
        embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
        retriever = KnowledgeRetriever(store, embed, top_k=2)

        result = _run(retriever.retrieve("where is nehru hall"))

        assert [d.id for d in result.documents] == ["a", "b"]
        assert result.total_found == 2
        assert result.query == "where is nehru hall"
        embed.assert_awaited_once_with("where is nehru hall")
        store.search.assert_awaited_once_with([0.1, 0.2, 0.3], top_k=2)

    def test_empty_index_returns_no_documents(self):
        result = _run(KnowledgeRetriever(_store([]), AsyncMock(return_value=[0.0])).retrieve("q"))
        assert result.documents == []
        assert result.total_found == 0

    def test_backend_error_becomes_retrieval_failure(self):
        retriever = KnowledgeRetriever(
            _store(error=ConnectionError("qdrant down")), AsyncMock(return_value=[0.0]),
        )
        with pytest.raises(RetrievalFailure, match="qdrant down"):
            _run(retriever.retrieve("q"))

    def test_embedding_error_becomes_retrieval_failure(self):
        retriever = KnowledgeRetriever(_store([]), AsyncMock(side_effect=ValueError("no key")))
        with pytest.raises(RetrievalFailure):
            _run(retriever.retrieve("q"))

    def test_slow_backend_times_out(self):
        async def slow_search(*args, **kwargs):
            await asyncio.sleep(1.0)
            return []

        store = _store()
        store.search.side_effect = slow_search
        retriever = KnowledgeRetriever(store, AsyncMock(return_value=[0.0]), timeout=0.05)
        with pytest.raises(RetrievalFailure, match="timed out"):
            _run(retriever.retrieve("q"))

    def test_slow_embedding_times_out(self):
        async def slow_embed(text):
            await asyncio.sleep(1.0)
            return [0.0]

        retriever = KnowledgeRetriever(_store(), slow_embed, timeout=0.05)
        with pytest.raises(RetrievalFailure, match="timed out"):
            _run(retriever.retrieve("q"))

    def test_embed_and_search_share_one_timeout(self):
        async def embed(text):
            await asyncio.sleep(0.15)
            return [0.0]

        async def search(*args, **kwargs):
            await asyncio.sleep(0.15)
            return []

        store = _store()
        store.search.side_effect = search
        retriever = KnowledgeRetriever(store, embed, timeout=0.2)
        start = time.perf_counter()
        with pytest.raises(RetrievalFailure, match="timed out"):
            _run(retriever.retrieve("q"))
        assert time.perf_counter() - start < 0.3

    def test_ready_when_collection_is_green(self):
        assert _run(KnowledgeRetriever(_store(), AsyncMock()).is_ready()) is True

    def test_not_ready_when_collection_is_yellow(self):
        assert _run(KnowledgeRetriever(_store(status="yellow"), AsyncMock()).is_ready()) is False

    def test_readiness_never_raises(self):
        store = _store()
        store.collection_status.side_effect = ConnectionError("refused")
        assert _run(KnowledgeRetriever(store, AsyncMock()).is_ready()) is False
