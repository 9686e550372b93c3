# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - query.py: POST /query (campus assistant chat), GET /query (usage)
#   - health.py: GET /health (aggregate component health)
#   - deps.py: orchestrator assembly, injected via Depends()
# =============================================================================
