# =============================================================================
# LangGraph Orchestrator — Pipeline State Machine and Health Probe
# =============================================================================
#
# Wires the agents into a LangGraph StateGraph:
#
# GRAPH TOPOLOGY:
#
#   START ──▶ classify ──┬─(simple)──▶ canned_response ──────────────▶ END
#                        │
#                        └─(full)────▶ retrieve ──┬─(search)─▶ web_search ─┐
#                                                 │                        ▼
#                                                 └──────────────────▶ synthesize
#                                                                          │
#                                                              generate ◀──┘──▶ END
#
# DESIGN DECISION: Web search is a fallback trigger, not just an intent.
# After retrieval, web search runs when the caller allows it AND any of:
#   - the classifier flagged requires_web_search
#   - retrieval returned no documents (or failed)
#   - every retrieved document scored below 0.3
# A locally confident answer never pays for an external call; a locally
# empty one always gets a chance at external grounding.
#
# DESIGN DECISION: Best-effort upstream, guaranteed downstream.
# retrieve and web_search swallow their failures (logged) and leave their
# result unset. synthesize and generate always run, so a request with no
# evidence still gets a low-confidence answer instead of an error.
#
# DESIGN DECISION: Timeline via a reducer, not shared mutation.
# Every node returns {"timeline": {node_name: ms}}; the Annotated reducer
# merges them. Stages appear in the timeline only if they executed.
#
# DESIGN DECISION: Graph compiled once per Orchestrator instance.
# Nodes are bound methods, so the compiled graph carries its own agents.
# Per-request data lives only in the state dict passed to ainvoke().
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from app.agents.answer import AnswerGenerator, SummarizedResponse
from app.agents.canned import CannedResponder, SimpleResponse
from app.agents.classifier import QueryAnalysis, QueryClassifier
from app.agents.errors import ClassificationError, OrchestrationFailure
from app.agents.history import ConversationTurn, to_turns
from app.agents.retriever import KnowledgeRetriever, RetrievalResult
from app.agents.synthesizer import ContextSynthesizer, ReasoningResult
from app.agents.web_search import WebSearchAggregator, WebSearchResponse

logger = logging.getLogger(__name__)

LOW_SCORE_THRESHOLD = 0.3
HEALTHY_FRACTION = 0.6
HEALTH_PROBE_TIMEOUT = 10.0

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


# ---------------------------------------------------------------------------
# Agent State Schema
# ---------------------------------------------------------------------------


def merge_timeline(
    left: dict[str, float] | None, right: dict[str, float] | None,
) -> dict[str, float]:
    return {**(left or {}), **(right or {})}


class PipelineState(TypedDict, total=False):
    """
    State that flows through the graph for ONE request.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    query: str
    enable_web_search: bool
    is_first_message: bool
    history: tuple[ConversationTurn, ...]

    # --- Intermediate (set by nodes) ---
    analysis: QueryAnalysis
    retrieval: RetrievalResult | None
    web_search: WebSearchResponse | None
    web_search_ran: bool
    reasoning: ReasoningResult

    # --- Output ---
    simple_response: SimpleResponse
    answer: SummarizedResponse

    timeline: Annotated[dict[str, float], merge_timeline]


# ---------------------------------------------------------------------------
# Result Types
# ---------------------------------------------------------------------------


@dataclass
class OrchestrationResult:
    """Everything the calling boundary needs for one request."""

    response: SummarizedResponse | SimpleResponse
    analysis: QueryAnalysis
    total_processing_time_ms: float
    agent_timeline: dict[str, float]
    is_simple_response: bool
    retrieval: RetrievalResult | None = None
    web_search: WebSearchResponse | None = None
    reasoning: ReasoningResult | None = None


@dataclass
class HealthReport:
    status: HealthStatus
    component_status: dict[str, HealthStatus]
    details: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure decision helpers
# ---------------------------------------------------------------------------


def should_search_web(
    enable_web_search: bool,
    analysis: QueryAnalysis,
    retrieval: RetrievalResult | None,
) -> bool:
    if not enable_web_search:
        return False
    if analysis.requires_web_search:
        return True
    if retrieval is None or not retrieval.documents:
        return True
    return all(doc.score < LOW_SCORE_THRESHOLD for doc in retrieval.documents)


def aggregate_status(component_status: Mapping[str, str]) -> HealthStatus:
    healthy = sum(1 for s in component_status.values() if s == "healthy")
    total = len(component_status)
    if healthy == total:
        return "healthy"
    if healthy >= total * HEALTHY_FRACTION:
        return "degraded"
    return "unhealthy"


NodeFn = Callable[[PipelineState], Awaitable[dict[str, Any]]]


def _timed(name: str, node: NodeFn) -> NodeFn:
    """Wrap a node with entry/exit logging and a timeline entry."""

    async def wrapper(state: PipelineState) -> dict[str, Any]:
        logger.info("Stage %s: start", name)
        start = time.perf_counter()
        update = await node(state)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info("Stage %s: done in %.1fms", name, elapsed_ms)
        return {**update, "timeline": {name: elapsed_ms}}

    return wrapper


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Orchestrator:
    """Top-level controller: runs the graph and reports system health."""

    name = "Orchestrator"
    description = "Coordinates all agents and manages the multi-agent pipeline"

    def __init__(
        self,
        classifier: QueryClassifier,
        canned: CannedResponder,
        retriever: KnowledgeRetriever,
        web_search: WebSearchAggregator,
        synthesizer: ContextSynthesizer,
        generator: AnswerGenerator,
    ) -> None:
        self.classifier = classifier
        self.canned = canned
        self.retriever = retriever
        self.web_search = web_search
        self.synthesizer = synthesizer
        self.generator = generator
        self.graph = self._build_graph()

    # -----------------------------------------------------------------------
    # Graph Assembly
    # -----------------------------------------------------------------------

    def _build_graph(self):
        builder = StateGraph(PipelineState)
        builder.add_node("classify", _timed("classify", self._classify_node))
        builder.add_node("canned_response", _timed("canned_response", self._canned_node))
        builder.add_node("retrieve", _timed("retrieve", self._retrieve_node))
        builder.add_node("web_search", _timed("web_search", self._web_search_node))
        builder.add_node("synthesize", _timed("synthesize", self._synthesize_node))
        builder.add_node("generate", _timed("generate", self._generate_node))

        builder.add_edge(START, "classify")
        builder.add_conditional_edges(
            "classify",
            self._route_after_classify,
            {"simple": "canned_response", "full": "retrieve"},
        )
        builder.add_edge("canned_response", END)
        builder.add_conditional_edges(
            "retrieve",
            self._route_after_retrieve,
            {"search": "web_search", "skip": "synthesize"},
        )
        builder.add_edge("web_search", "synthesize")
        builder.add_edge("synthesize", "generate")
        builder.add_edge("generate", END)
        return builder.compile()

    @staticmethod
    def _route_after_classify(state: PipelineState) -> str:
        return "full" if state["analysis"].requires_full_pipeline else "simple"

    @staticmethod
    def _route_after_retrieve(state: PipelineState) -> str:
        search = should_search_web(
            state.get("enable_web_search", True),
            state["analysis"],
            state.get("retrieval"),
        )
        logger.info("Web search decision: %s", "search" if search else "skip")
        return "search" if search else "skip"

    # -----------------------------------------------------------------------
    # Node Functions
    # -----------------------------------------------------------------------

    async def _classify_node(self, state: PipelineState) -> dict[str, Any]:
        try:
            analysis = self.classifier.classify(state["query"])
        except Exception as exc:
            raise ClassificationError(str(exc)) from exc
        return {"analysis": analysis}

    async def _canned_node(self, state: PipelineState) -> dict[str, Any]:
        return {"simple_response": self.canned.respond(state["query"])}

    async def _retrieve_node(self, state: PipelineState) -> dict[str, Any]:
        try:
            retrieval = await self.retriever.retrieve(state["query"])
        except Exception as exc:
            logger.warning("Retrieval failed, continuing without local knowledge: %s", exc)
            retrieval = None
        return {"retrieval": retrieval}

    async def _web_search_node(self, state: PipelineState) -> dict[str, Any]:
        try:
            response = await self.web_search.search(
                state["query"], state.get("history", ()),
            )
        except Exception as exc:
            logger.warning("Web search failed, continuing without web results: %s", exc)
            response = None
        return {"web_search": response, "web_search_ran": True}

    async def _synthesize_node(self, state: PipelineState) -> dict[str, Any]:
        retrieval = state.get("retrieval")
        web = state.get("web_search")
        reasoning = self.synthesizer.synthesize(
            query=state["query"],
            local_docs=retrieval.documents if retrieval else None,
            web_results=web.results if web else None,
            web_search_enabled=state.get("web_search_ran", False),
            history=state.get("history", ()),
        )
        return {"reasoning": reasoning}

    async def _generate_node(self, state: PipelineState) -> dict[str, Any]:
        answer = await self.generator.generate(
            query=state["query"],
            reasoning=state["reasoning"],
            web_search_enabled=state.get("web_search_ran", False),
            is_first_message=state.get("is_first_message", False),
            history=state.get("history", ()),
        )
        return {"answer": answer}

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def process(
        self,
        query: str,
        enable_web_search: bool = True,
        is_first_message: bool = False,
        history: Iterable[ConversationTurn | Mapping[str, str]] | None = None,
    ) -> OrchestrationResult:
        """
        Run one request through the graph.

        Raises:
            OrchestrationFailure: classification failed, or an unexpected
                error escaped every containment point.
        """
        logger.info(
            "Orchestrating query='%s', web_search=%s, first_message=%s",
            query[:80], enable_web_search, is_first_message,
        )
        start = time.perf_counter()
        initial_state: PipelineState = {
            "query": query,
            "enable_web_search": enable_web_search,
            "is_first_message": is_first_message,
            "history": to_turns(history),
            "timeline": {},
        }

        try:
            final = await self.graph.ainvoke(initial_state)
        except Exception as exc:
            logger.exception("Orchestration failed")
            raise OrchestrationFailure(f"Orchestration failed: {exc}") from exc

        total_ms = (time.perf_counter() - start) * 1000
        is_simple = "simple_response" in final
        result = OrchestrationResult(
            response=final["simple_response"] if is_simple else final["answer"],
            analysis=final["analysis"],
            total_processing_time_ms=round(total_ms, 2),
            agent_timeline=dict(final.get("timeline", {})),
            is_simple_response=is_simple,
            retrieval=final.get("retrieval"),
            web_search=final.get("web_search"),
            reasoning=final.get("reasoning"),
        )
        logger.info(
            "Orchestration complete in %.0fms (simple=%s, stages=%s)",
            total_ms, is_simple, ",".join(result.agent_timeline),
        )
        return result

    async def get_health(self) -> HealthReport:
        """
        Probe every component concurrently. Each probe is isolated: a probe
        that raises marks only its own component unhealthy.
        """
        probes: dict[str, tuple[Callable[[], Awaitable[bool]], str]] = {
            "classifier": (_always_ready, "Classifier failed health check"),
            "retriever": (self.retriever.is_ready, "Vector collection not ready"),
            "web_search": (
                self.web_search.probe,
                "No web search provider answered a test query",
            ),
            "synthesizer": (_always_ready, "Synthesizer failed health check"),
            "answer_generator": (
                self.generator.probe,
                "Generative model did not answer a test prompt",
            ),
        }
        outcomes = await asyncio.gather(
            *(
                asyncio.wait_for(probe(), HEALTH_PROBE_TIMEOUT)
                for probe, _ in probes.values()
            ),
            return_exceptions=True,
        )

        component_status: dict[str, HealthStatus] = {}
        details: list[str] = []
        for (name, (_, detail)), outcome in zip(probes.items(), outcomes):
            if isinstance(outcome, BaseException):
                component_status[name] = "unhealthy"
                details.append(f"{detail}: {outcome!r}")
            elif outcome:
                component_status[name] = "healthy"
            else:
                component_status[name] = "degraded"
                details.append(detail)

        report = HealthReport(
            status=aggregate_status(component_status),
            component_status=component_status,
            details=details,
        )
        logger.info("Health: %s %s", report.status, component_status)
        return report

    def describe_components(self) -> dict[str, str]:
        return {
            agent.name: agent.description
            for agent in (
                self.classifier,
                self.canned,
                self.retriever,
                self.web_search,
                self.synthesizer,
                self.generator,
                self,
            )
        }


async def _always_ready() -> bool:
    return True
