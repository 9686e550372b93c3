# =============================================================================
# Pipeline Exceptions
# =============================================================================
#
# Only OrchestrationFailure ever reaches the API layer. Every other error is
# contained by the stage that owns it:
#
#   ClassificationError     → fatal, re-raised as OrchestrationFailure
#   RetrievalFailure        → orchestrator continues without local documents
#   SearchProviderFailure   → aggregator drops that provider's results
#   SearchAggregateFailure  → orchestrator continues without web results
#   GenerationFailure       → answer generator returns its fallback reply
# =============================================================================

from __future__ import annotations


class AssistantError(Exception):
    """Base class for all pipeline errors."""


class ClassificationError(AssistantError):
    """The query classifier could not produce an analysis."""


class RetrievalFailure(AssistantError):
    """The vector-search backend or the embedding function failed."""


class SearchProviderFailure(AssistantError):
    """A single web-search provider call failed or timed out."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class SearchAggregateFailure(AssistantError):
    """Every enabled web-search provider failed."""


class GenerationFailure(AssistantError):
    """The generative-model call failed."""


class OrchestrationFailure(AssistantError):
    """The pipeline could not produce any result for the request."""
