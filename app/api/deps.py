# =============================================================================
# API Dependencies — Orchestrator Assembly for FastAPI Dependency Injection
# =============================================================================
#
# Builds the agent pipeline from settings once and hands it to the route
# handlers via Depends(get_orchestrator).
#
# DESIGN DECISION: FastAPI dependency (not a module global used directly).
# Route handlers receive the orchestrator as a parameter, so tests swap in
# a fully mocked pipeline with `app.dependency_overrides[get_orchestrator]`
# and never touch real credentials or backends.
#
# DESIGN DECISION: A missing LLM key does not prevent startup.
# The generator is built with llm=None; every answer degrades to the
# low-confidence fallback and /health reports the generator unhealthy.
# Canned responses, retrieval and web search keep working.
#
# DESIGN DECISION: Every collaborator is built from the same `config`.
# build_orchestrator(Settings(...)) applies to the LLM, the embedder, the
# vector store and the search providers alike; only the default module
# settings share the lazy singleton clients.
# =============================================================================

from __future__ import annotations

import logging

from app.agents.answer import AnswerGenerator
from app.agents.canned import CannedResponder
from app.agents.classifier import QueryClassifier
from app.agents.institution import InstitutionProfile
from app.agents.orchestrator import Orchestrator
from app.agents.retriever import KnowledgeRetriever
from app.agents.synthesizer import ContextSynthesizer
from app.agents.web_search import WebSearchAggregator
from app.config import Settings, settings
from app.services.embedder import make_embed_function
from app.services.llm import get_llm_provider
from app.services.search_providers import SearchCredentials, build_search_providers
from app.services.vectorstore import get_vector_store

logger = logging.getLogger(__name__)


def build_orchestrator(config: Settings | None = None) -> Orchestrator:
    """Assemble every agent from configuration."""
    config = config or settings
    institution = InstitutionProfile.from_settings(config)

    try:
        llm = get_llm_provider(config)
    except ValueError as e:
        logger.warning("LLM provider unavailable, answers will degrade: %s", e)
        llm = None

    providers = build_search_providers(
        SearchCredentials.from_settings(config),
        timeout=config.search_provider_timeout_seconds,
    )
    aggregator = WebSearchAggregator(
        providers,
        institution=institution,
        timeout=config.search_provider_timeout_seconds,
        result_limit=config.web_result_limit,
        budget=config.web_search_budget_seconds,
    )
    logger.info(
        "Web search providers enabled: %s",
        ", ".join(aggregator.enabled_providers()) or "none",
    )

    return Orchestrator(
        classifier=QueryClassifier(institution),
        canned=CannedResponder(institution),
        retriever=KnowledgeRetriever(
            store=get_vector_store(config),
            embed=make_embed_function(config),
            top_k=config.retrieval_top_k,
            timeout=config.vector_search_timeout_seconds,
        ),
        web_search=aggregator,
        synthesizer=ContextSynthesizer(institution),
        generator=AnswerGenerator(llm, institution),
    )


# Lazy singleton — the agents hold no per-request state
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator
