# =============================================================================
# Query API — Campus Assistant Chat Endpoint
# =============================================================================
#
# POST /query runs one user message through the orchestrator:
#
# FLOW:
#   1. Validate the body (blank query → 422 before the pipeline runs)
#   2. Run the orchestrator under the request wall-clock timeout
#   3. Map the OrchestrationResult to the camelCase response contract
#   4. Attach the aggregate system health (when enabled in settings)
#
# Error handling:
#   - OrchestrationFailure → 500 with a generic message, no stack detail
#   - Wall-clock timeout    → 504
#   Everything else degrades inside the pipeline to a lower-confidence
#   answer, so a 200 is the normal outcome even when backends are down.
# =============================================================================

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.agents.canned import SimpleResponse
from app.agents.errors import OrchestrationFailure
from app.agents.orchestrator import HealthReport, OrchestrationResult, Orchestrator
from app.api.deps import get_orchestrator
from app.config import settings
from app.models.requests import QueryRequest
from app.models.responses import (
    QueryAnalysisResponse,
    QueryResponse,
    ResponseMetadata,
    SystemHealthResponse,
    UsageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Query"])

USAGE_MESSAGE = (
    "Query API endpoint is working. Use POST method with query parameter. "
    "Web search is automatically enabled as fallback when knowledge base "
    "lacks information."
)


# ---------------------------------------------------------------------------
# POST /query — Ask the campus assistant
# ---------------------------------------------------------------------------


@router.post(
    "/query",
    response_model=QueryResponse,
    response_model_by_alias=True,
    summary="Ask the campus assistant",
    description=(
        "Classifies the message, answers small talk instantly, and otherwise "
        "runs retrieval, optional web search, synthesis and answer "
        "generation. Returns the answer with sources, per-stage timings and "
        "system health."
    ),
)
async def query_endpoint(
    request: QueryRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> QueryResponse:
    logger.info(
        "Query request: query='%s', web_search=%s, first_message=%s, history=%d",
        request.query[:80],
        request.enable_web_search,
        request.is_first_message,
        len(request.conversation_history),
    )

    try:
        result = await asyncio.wait_for(
            orchestrator.process(
                query=request.query,
                enable_web_search=request.enable_web_search,
                is_first_message=request.is_first_message,
                history=[m.model_dump() for m in request.conversation_history],
            ),
            timeout=settings.request_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        logger.error(
            "Query timed out after %ss: '%s'",
            settings.request_timeout_seconds, request.query[:80],
        )
        raise HTTPException(
            status_code=504,
            detail="The assistant took too long to respond. Please try again.",
        ) from e
    except OrchestrationFailure as e:
        logger.error("Query failed: %s", e)
        raise HTTPException(
            status_code=500,
            detail="Internal server error while processing the query.",
        ) from e

    health = None
    if settings.health_in_query_response:
        health = health_to_response(await orchestrator.get_health())

    return result_to_response(result, health)


@router.get(
    "/query",
    response_model=UsageResponse,
    summary="Usage hint for the query endpoint",
)
async def query_usage() -> UsageResponse:
    return UsageResponse(message=USAGE_MESSAGE)


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def result_to_response(
    result: OrchestrationResult,
    health: SystemHealthResponse | None = None,
) -> QueryResponse:
    response = result.response
    if isinstance(response, SimpleResponse):
        metadata = ResponseMetadata(
            processing_time_ms=response.processing_time_ms,
            response_type=response.response_type,
            total_processing_time=result.total_processing_time_ms,
            agent_timeline=result.agent_timeline,
            is_simple_response=result.is_simple_response,
        )
    else:
        metadata = ResponseMetadata(
            model=response.metadata.model,
            tokens_used=response.metadata.tokens_used,
            generation_time_ms=response.metadata.generation_time_ms,
            total_processing_time=result.total_processing_time_ms,
            agent_timeline=result.agent_timeline,
            is_simple_response=result.is_simple_response,
        )

    analysis = result.analysis
    return QueryResponse(
        response=response.response,
        confidence=response.confidence,
        sources=list(response.sources),
        metadata=metadata,
        query_analysis=QueryAnalysisResponse(
            intent=analysis.intent,
            confidence=analysis.confidence,
            reasoning=analysis.reasoning,
            requires_full_pipeline=analysis.requires_full_pipeline,
            clarification_questions=list(analysis.clarification_questions),
        ),
        system_health=health,
    )


def health_to_response(report: HealthReport) -> SystemHealthResponse:
    return SystemHealthResponse(
        status=report.status,
        component_status=report.component_status,
        details=report.details,
    )
