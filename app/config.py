# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# DESIGN DECISION: We use Pydantic V2's `BaseSettings` for configuration.
# Settings are loaded once at startup and are read-only afterwards; every
# concurrent request shares the same instance by reference.
#
# HOW IT WORKS:
# Pydantic Settings loads values in this priority order (highest first):
#   1. Environment variables (e.g., `SERPER_API_KEY=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from app.config import settings
#   print(settings.qdrant_url)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults target local development against a Qdrant container on
    localhost. Credentials have no defaults: a missing key simply disables
    the component that needs it.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Campus Knowledge Assistant"
    app_version: str = "0.1.0"
    debug: bool = True
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Institution
    # -------------------------------------------------------------------------
    # The display names used in prompts and canned replies. The domain and
    # vocabulary lists used for classification and ranking live in
    # app.agents.institution.InstitutionProfile.
    # -------------------------------------------------------------------------
    institution_name: str = "IIT Kharagpur"
    assistant_name: str = "KGP GPT"

    # -------------------------------------------------------------------------
    # LLM Configuration — Multi-Provider
    # -------------------------------------------------------------------------
    # Two provider families:
    #   - "anthropic": Claude via native Anthropic SDK
    #   - "openai_compatible": any OpenAI-compatible API. Gemini works here
    #     too, via https://generativelanguage.googleapis.com/v1beta/openai/
    #
    # Example configs:
    #   Gemini:  provider=openai_compatible, base_url=https://generativelanguage.googleapis.com/v1beta/openai/, model=gemini-2.5-flash
    #   Claude:  provider=anthropic, model=claude-sonnet-4-6
    # -------------------------------------------------------------------------
    llm_provider: str = "anthropic"  # "anthropic" or "openai_compatible"
    llm_base_url: str | None = None  # Only needed for openai_compatible
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    llm_model: str = "claude-sonnet-4-6"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1024

    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    # The knowledge base was indexed with 768-dimensional vectors, so the
    # query embedder requests the same size. text-embedding-3-* models
    # accept a `dimensions` parameter for this.
    # -------------------------------------------------------------------------
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 768
    embedding_base_url: str | None = None

    # -------------------------------------------------------------------------
    # Vector Store Configuration — Pluggable Backend
    # -------------------------------------------------------------------------
    # Options:
    #   - "qdrant": Qdrant server (default, matches the loaded knowledge base)
    #   - "chroma": ChromaDB (in-process or client/server)
    # -------------------------------------------------------------------------
    vectorstore_type: str = "qdrant"  # "qdrant" or "chroma"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_collection: str = "kgp_knowledge_base"
    chroma_url: str | None = None  # Only needed for Chroma in client/server mode

    retrieval_top_k: int = 5

    # -------------------------------------------------------------------------
    # Web Search Providers
    # -------------------------------------------------------------------------
    # Each provider is enabled only when its credentials are present.
    # DuckDuckGo's Instant Answer API needs no key and is on by default.
    # -------------------------------------------------------------------------
    serper_api_key: str = ""
    bing_api_key: str = ""
    semantic_scholar_api_key: str = ""
    tavily_api_key: str = ""
    brightdata_api_key: str = ""
    brightdata_username: str = ""
    brightdata_password: str = ""
    duckduckgo_enabled: bool = True

    web_result_limit: int = 10

    # -------------------------------------------------------------------------
    # Timeouts (seconds)
    # -------------------------------------------------------------------------
    # request_timeout_seconds bounds the whole /query call. The three stage
    # budgets (retrieval, web search, generation) run one after another and
    # must sum to less than it, so a slow stage degrades the answer instead
    # of turning into a 504. search_provider_timeout_seconds bounds a single
    # provider call inside the web search budget.
    # -------------------------------------------------------------------------
    request_timeout_seconds: float = 30.0
    vector_search_timeout_seconds: float = 6.0
    web_search_budget_seconds: float = 10.0
    search_provider_timeout_seconds: float = 8.0
    llm_timeout_seconds: float = 12.0

    # Attach the aggregate health report to every /query response
    health_in_query_response: bool = True

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, override with FastAPI's dependency_overrides or construct
    Settings(...) directly and pass it to the factories.
    """
    return Settings()


# ---------------------------------------------------------------------------
# Module-level convenience instance
# ---------------------------------------------------------------------------
settings = Settings()
