# =============================================================================
# Health API — Aggregate System Health
# =============================================================================
#
# GET /health probes every pipeline component through the orchestrator.
# Always answers 200: a degraded or unhealthy system is reported in the
# body, not as an HTTP error, so dashboards can read the component map.
# =============================================================================

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from app.agents.orchestrator import Orchestrator
from app.api.deps import get_orchestrator
from app.config import settings
from app.models.responses import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_by_alias=True,
    summary="Aggregate system health",
)
async def health_endpoint(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    report = await orchestrator.get_health()
    if report.status != "healthy":
        logger.warning("System %s: %s", report.status, "; ".join(report.details))
    return HealthResponse(
        status=report.status,
        component_status=report.component_status,
        details=report.details,
        timestamp=datetime.now(UTC),
        version=settings.app_version,
    )
