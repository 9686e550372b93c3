# =============================================================================
# FastAPI Application — Campus Assistant Service
# =============================================================================
#
# Run with:
#   uvicorn app.main:app --host 0.0.0.0 --port 8000 --reload
#
# Logging is configured once here; every module logs through its own
# `logging.getLogger(__name__)`.
# =============================================================================

import logging

from fastapi import FastAPI

from app.api import health, query
from app.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description=(
        f"{settings.assistant_name}: retrieval-augmented multi-agent assistant "
        f"for {settings.institution_name}"
    ),
    version=settings.app_version,
    debug=settings.debug,
)

app.include_router(query.router)
app.include_router(health.router)

logger.info("%s v%s ready", settings.app_name, settings.app_version)
