# =============================================================================
# Agents Package — LangGraph Multi-Agent Orchestration
# =============================================================================
# Implements the query pipeline as a graph of small agents:
#   - classifier.py: pattern-based intent (simple/local/internet/hybrid)
#   - canned.py: instant replies for greetings and small talk
#   - retriever.py: top-K vector search over the local knowledge base
#   - web_search.py: query enhancement, tiered dispatch, provider fan-out,
#     dedup and relevance boosting
#   - synthesizer.py: evidence bundle, confidence and conflict flags
#   - answer.py: final LLM answer with a guaranteed fallback
#   - orchestrator.py: LangGraph graph wiring the above, plus health probe
#
# Shared support: history.py (conversation turns), institution.py
# (institution vocabulary), errors.py (exception taxonomy).
# =============================================================================
