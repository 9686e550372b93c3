# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data coming OUT of the API. FastAPI serialises response models
# by alias, so every field goes out in camelCase (`agentTimeline`,
# `queryAnalysis`, `systemHealth`).
#
# DESIGN DECISION: One metadata model for both response kinds.
# Canned responses carry `processingTimeMs` and `responseType`; generated
# answers carry `model`, `tokensUsed` and `generationTimeMs`. Fields that do
# not apply are null, and the orchestration fields are always present.
# =============================================================================

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseMetadata(_CamelModel):
    # Generated answers
    model: str | None = None
    tokens_used: int | None = None
    generation_time_ms: float | None = None

    # Canned responses
    processing_time_ms: float | None = None
    response_type: str | None = None

    # Orchestration
    total_processing_time: float = Field(description="Wall-clock ms for the whole pipeline")
    agent_timeline: dict[str, float] = Field(
        default_factory=dict,
        description="Per-stage ms, only for stages that ran",
    )
    is_simple_response: bool


class QueryAnalysisResponse(_CamelModel):
    intent: Literal["simple", "local", "internet", "hybrid"]
    confidence: float
    reasoning: str
    requires_full_pipeline: bool
    clarification_questions: list[str] = Field(
        default_factory=list,
        description="Suggested follow-ups when the query is too vague to answer well",
    )


class SystemHealthResponse(_CamelModel):
    status: HealthStatus
    component_status: dict[str, HealthStatus]
    details: list[str] = Field(default_factory=list)


class QueryResponse(_CamelModel):
    """Response for POST /query."""

    response: str
    confidence: float = Field(ge=0.0, le=1.0)
    sources: list[str]
    metadata: ResponseMetadata
    query_analysis: QueryAnalysisResponse
    system_health: SystemHealthResponse | None = None


class HealthResponse(SystemHealthResponse):
    """Response for GET /health."""

    timestamp: datetime
    version: str


class UsageResponse(BaseModel):
    """Response for GET /query."""

    message: str
