# =============================================================================
# Services Package — External Backends
# =============================================================================
# Adapters for everything that crosses a process boundary:
#   - llm.py: Multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - embedder.py: Query embeddings via an OpenAI-compatible API
#   - vectorstore.py: Pluggable vector store protocol (Qdrant, Chroma)
#   - search_providers.py: Web-search adapters (Serper, Bing, DuckDuckGo,
#     Semantic Scholar, Tavily, BrightData) normalised to WebSearchResult
# =============================================================================
