# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP boundary. These are SEPARATE from
# the agent dataclasses (app/agents/*): the agents own the pipeline's
# internal shapes, these own the public JSON contract (camelCase keys).
# =============================================================================
