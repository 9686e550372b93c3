# =============================================================================
# Campus Knowledge Assistant
# =============================================================================
# A retrieval-augmented multi-agent assistant for one institution's campus
# knowledge (defaults: IIT Kharagpur, "KGP GPT"). A LangGraph pipeline
# classifies each message, answers small talk from canned replies, and
# otherwise combines vector retrieval with live web search before asking
# an LLM for the final answer.
#
# Package structure:
#   app/
#   ├── api/          → FastAPI route handlers (query, health)
#   ├── agents/       → LangGraph orchestration and the pipeline agents
#   │                    (classifier, canned replies, retriever, web search,
#   │                    synthesizer, answer generator)
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Backends (LLM providers, embeddings, vector stores,
#                        web-search provider adapters)
# =============================================================================
