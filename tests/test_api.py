# =============================================================================
# API Tests — /query and /health
# =============================================================================
#
# The orchestrator dependency is overridden with a stub, so these tests
# exercise only validation, status codes and the camelCase wire contract.
# =============================================================================

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from app.agents.answer import GenerationMetadata, SummarizedResponse
from app.agents.canned import SimpleResponse
from app.agents.classifier import QueryAnalysis
from app.agents.errors import OrchestrationFailure
from app.agents.orchestrator import HealthReport, OrchestrationResult
from app.api.deps import get_orchestrator
from app.config import settings
from app.main import app

HEALTHY = HealthReport(
    status="healthy",
    component_status={
        "classifier": "healthy", "retriever": "healthy", "web_search": "healthy",
        "synthesizer": "healthy", "answer_generator": "healthy",
    },
)


class StubOrchestrator:
    """Records process() calls and replays a canned outcome."""

    def __init__(self, result=None, error=None, delay=0.0, health=HEALTHY):
        self.result = result
        self.error = error
        self.delay = delay
        self.health = health
        self.calls: list[dict] = []

    async def process(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result

    async def get_health(self):
        return self.health


def _full_result() -> OrchestrationResult:
    return OrchestrationResult(
        response=SummarizedResponse(
            response="Nehru Hall is one of the largest halls.",
            confidence=0.8,
            sources=["Local Knowledge Base", "Web Search Results"],
            metadata=GenerationMetadata(
                model="claude-sonnet-4-6", tokens_used=120, generation_time_ms=850.0,
            ),
        ),
        analysis=QueryAnalysis(
            intent="hybrid", confidence=0.7, reasoning="hybrid query",
            requires_web_search=True,
            clarification_questions=["Which hall do you mean?"],
        ),
        total_processing_time_ms=1200.0,
        agent_timeline={"classify": 0.1, "retrieve": 40.0, "generate": 850.0},
        is_simple_response=False,
    )


def _simple_result() -> OrchestrationResult:
    return OrchestrationResult(
        response=SimpleResponse(
            response="Hello! I'm KGP GPT.", confidence=0.95,
            sources=["System Response"], response_type="greeting",
            processing_time_ms=0.2,
        ),
        analysis=QueryAnalysis(
            intent="simple", confidence=0.95, reasoning="greeting",
            requires_full_pipeline=False,
        ),
        total_processing_time_ms=1.0,
        agent_timeline={"classify": 0.1, "canned_response": 0.2},
        is_simple_response=True,
    )


@pytest.fixture
def stub():
    return StubOrchestrator(result=_full_result())


@pytest.fixture
def client(stub):
    app.dependency_overrides[get_orchestrator] = lambda: stub
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Test: POST /query
# ---------------------------------------------------------------------------


class TestQueryEndpoint:
    def test_full_answer_uses_camel_case(self, client):
        resp = client.post("/query", json={"query": "best hall for freshers"})
        assert resp.status_code == 200
        body = resp.json()

        assert body["response"] == "Nehru Hall is one of the largest halls."
        assert body["sources"] == ["Local Knowledge Base", "Web Search Results"]
        assert body["metadata"]["tokensUsed"] == 120
        assert body["metadata"]["isSimpleResponse"] is False
        assert body["metadata"]["agentTimeline"]["retrieve"] == 40.0
        assert body["metadata"]["totalProcessingTime"] == 1200.0
        assert body["queryAnalysis"]["intent"] == "hybrid"
        assert body["queryAnalysis"]["requiresFullPipeline"] is True
        assert body["queryAnalysis"]["clarificationQuestions"] == ["Which hall do you mean?"]
        assert body["systemHealth"]["status"] == "healthy"

    def test_simple_answer_metadata(self, client, stub):
        stub.result = _simple_result()
        body = client.post("/query", json={"query": "hi"}).json()
        assert body["metadata"]["isSimpleResponse"] is True
        assert body["metadata"]["responseType"] == "greeting"
        assert body["metadata"]["model"] is None
        assert body["sources"] == ["System Response"]
        assert body["queryAnalysis"]["clarificationQuestions"] == []

    def test_camel_case_input_reaches_orchestrator(self, client, stub):
        client.post("/query", json={
            "query": "his research papers",
            "enableWebSearch": False,
            "isFirstMessage": True,
            "conversationHistory": [
                {"role": "assistant", "content": "The director is Professor Jane Doe."},
            ],
        })
        call = stub.calls[0]
        assert call["enable_web_search"] is False
        assert call["is_first_message"] is True
        assert call["history"] == [
            {"role": "assistant", "content": "The director is Professor Jane Doe."},
        ]

    def test_snake_case_input_is_accepted(self, client, stub):
        resp = client.post("/query", json={"query": "mess fees", "enable_web_search": False})
        assert resp.status_code == 200
        assert stub.calls[0]["enable_web_search"] is False

    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    def test_blank_query_is_rejected(self, client, stub, query):
        resp = client.post("/query", json={"query": query})
        assert resp.status_code == 422
        assert stub.calls == []

    def test_missing_query_is_rejected(self, client):
        assert client.post("/query", json={}).status_code == 422

    def test_invalid_history_role_is_rejected(self, client):
        resp = client.post("/query", json={
            "query": "hostel rules",
            "conversationHistory": [{"role": "system", "content": "x"}],
        })
        assert resp.status_code == 422

    def test_orchestration_failure_is_500(self, client, stub):
        stub.error = OrchestrationFailure("classifier exploded")
        resp = client.post("/query", json={"query": "hostel rules"})
        assert resp.status_code == 500
        assert "classifier exploded" not in resp.text

    def test_wall_clock_timeout_is_504(self, client, stub, monkeypatch):
        monkeypatch.setattr(settings, "request_timeout_seconds", 0.05)
        stub.delay = 1.0
        resp = client.post("/query", json={"query": "hostel rules"})
        assert resp.status_code == 504

    def test_health_can_be_left_out(self, client, monkeypatch):
        monkeypatch.setattr(settings, "health_in_query_response", False)
        body = client.post("/query", json={"query": "hostel rules"}).json()
        assert body["systemHealth"] is None

    def test_usage_message(self, client):
        resp = client.get("/query")
        assert resp.status_code == 200
        assert resp.json()["message"].startswith("Query API endpoint is working.")


# ---------------------------------------------------------------------------
# Test: GET /health
# ---------------------------------------------------------------------------


class TestHealthEndpoint:
    def test_healthy_report(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["componentStatus"]["retriever"] == "healthy"
        assert body["version"] == settings.app_version
        assert "timestamp" in body

    def test_unhealthy_is_still_200(self, client, stub):
        stub.health = HealthReport(
            status="unhealthy",
            component_status={"retriever": "unhealthy", "answer_generator": "degraded"},
            details=["Vector collection not ready", "Generative model did not answer"],
        )
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "unhealthy"
        assert len(resp.json()["details"]) == 2
