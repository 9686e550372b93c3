# =============================================================================
# Query Classifier — Rule-Based Intent Routing
# =============================================================================
#
# Maps raw user text to one of four intents and decides how much of the
# pipeline the query deserves:
#
#   simple   — greeting / acknowledgment / farewell / help. Canned reply,
#              no retrieval, no web search, no LLM call.
#   internet — identity, biography or recency questions. Web search required.
#   hybrid   — comparisons, how-tos, rankings, campus facilities, staff
#              lookups. Local knowledge plus web search.
#   local    — everything else. Local knowledge base first; the orchestrator
#              may still fall back to web search if retrieval comes up empty.
#
# DESIGN DECISION: Rule-based over LLM classification.
# Classification runs on every request, including "hi". A pattern check is
# instant, free, deterministic and trivially testable.
#
# DESIGN DECISION: Word-boundary regexes.
# Bare substring checks misfire on short patterns ("vs" inside "hostels",
# "now" inside "know"). Every multi-letter pattern is anchored with \b.
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Literal

from app.agents.institution import DEFAULT_INSTITUTION, InstitutionProfile

logger = logging.getLogger(__name__)

Intent = Literal["simple", "local", "internet", "hybrid"]


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QueryAnalysis:
    """Output of classification. Created once per query, never mutated."""

    intent: Intent
    confidence: float
    reasoning: str
    keywords: list[str] = field(default_factory=list)
    requires_web_search: bool = False
    requires_full_pipeline: bool = True
    # Follow-up questions for vague full-pipeline queries; empty otherwise
    clarification_questions: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pattern Tables
# ---------------------------------------------------------------------------
# Short canonical phrases. The whole (trimmed, lowercased) query must match.
# The canned-response generator uses the same families to pick its reply.
# ---------------------------------------------------------------------------

SIMPLE_PATTERNS: list[re.Pattern[str]] = [
    # Greetings
    re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening|good night)$"),
    re.compile(r"^(hi there|hello there|hey there)$"),
    # Basic responses
    re.compile(r"^(yes|no|ok|okay|sure|alright|fine|good|great|thanks|thank you)$"),
    re.compile(r"^(yes please|no thanks|no thank you)$"),
    # Questions about the assistant itself
    re.compile(r"^(what can you do|what are you|who are you|help|how are you)$"),
    re.compile(r"^(what is this|what is kgp gpt|what is this system)$"),
    # Acknowledgments
    re.compile(r"^(got it|understood|i see|i understand|noted)$"),
    # Session control
    re.compile(r"^(start over|reset|clear|new conversation)$"),
    # Farewells
    re.compile(r"^(bye|goodbye|see you|take care)$"),
    re.compile(r"^(test|testing|check)$"),
]

# Identity/biography and recency markers. Institution-specific
# "this year's X" patterns are built per profile in QueryClassifier.
WEB_SEARCH_PATTERNS: list[re.Pattern[str]] = [
    # Identity / biography
    re.compile(r"\bwho (is|are|was|were)\b"),
    re.compile(r"\b(tell me about|information about|details about)\b"),
    re.compile(r"\b(biography|profile|background)\b"),
    # Recency
    re.compile(r"\b(current|currently|recent|latest|today|yesterday|now|upcoming)\b"),
    re.compile(r"\bthis (week|month|year|semester)\b"),
    re.compile(r"\b(news|announcement|notification|update|updates|trending|breaking)\b"),
    re.compile(r"\b(real.?time|live|happening|ongoing)\b"),
    re.compile(r"\bwhat.?happened\b|\bwhat.?s going on\b|\bcurrent events\b"),
    # Explicit dates
    re.compile(r"\b(19|20)\d{2}\b"),
    re.compile(r"\b\d{2}[/-]\d{2}\b"),
]

HYBRID_PATTERNS: list[re.Pattern[str]] = [
    # Comparison
    re.compile(r"\b(compare|comparison|difference|differences|versus|vs\.?|between|among)\b"),
    re.compile(r"\bwhich is better\b"),
    # How-to
    re.compile(r"\bhow.?to\b|\b(guide|tutorial|steps|procedure)\b"),
    # Ranking
    re.compile(r"\b(best|top|ranking|rankings)\b"),
    # Campus facilities and student life
    re.compile(r"\b(facilities|amenities|infrastructure|campus life)\b"),
    re.compile(r"\b(departments|programs|programmes|courses|specializations)\b"),
    re.compile(r"\b(student life|activities|clubs|societies|organizations)\b"),
    re.compile(r"\b(accommodation|hostels?|halls|residence)\b"),
    re.compile(r"\b(transportation|connectivity|location)\b"),
    # Staff titles and research output
    re.compile(r"\b(professor|professors|faculty|teacher|instructor|lecturer)\b"),
    re.compile(r"\b(research|publications?|papers?|conference|journal)\b"),
]

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "can", "what", "when", "where", "why", "how", "who",
    "which", "that", "this", "these", "those",
})

_NON_WORD = re.compile(r"[^\w\s]")


def _alternation(terms: tuple[str, ...]) -> str:
    return "|".join(re.escape(term) for term in terms)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class QueryClassifier:
    """
    Deterministic, I/O-free query classifier.

    Callers must reject empty queries before calling classify(); an empty
    string is not special-cased and classifies as simple.
    """

    name = "Query Classifier"
    description = "Interprets user intent and decides the retrieval strategy"

    def __init__(self, institution: InstitutionProfile = DEFAULT_INSTITUTION):
        self.institution = institution
        self._trigger = re.compile(
            rf"({_alternation(institution.trigger_terms)})",
        )
        topics = _alternation(institution.recency_topics)
        self._recency_topic = re.compile(
            rf"\b({topics})\W*(19|20)\d{{2}}\b"
            rf"|\b(current|this year'?s?)\W+({topics})\b",
        )
        self._surname = re.compile(
            rf"\b({_alternation(institution.surnames)})\b",
        )

    def classify(self, text: str) -> QueryAnalysis:
        """
        Classify a query. Checks run in priority order and the first
        match wins: simple → internet → hybrid → local.
        """
        logger.info("Classifying query: '%s'", text[:80])
        keywords = extract_keywords(text)
        lowered = text.strip().lower()

        if self.is_simple(lowered):
            analysis = QueryAnalysis(
                intent="simple",
                confidence=0.95,
                reasoning="Greeting or basic interaction, no retrieval needed",
                keywords=keywords,
                requires_web_search=False,
                requires_full_pipeline=False,
            )
        elif self.needs_web_search(lowered):
            analysis = QueryAnalysis(
                intent="internet",
                confidence=0.9,
                reasoning="Query asks for identity or current information",
                keywords=keywords,
                requires_web_search=True,
                clarification_questions=self.clarification_questions(text),
            )
        elif self.is_hybrid(lowered):
            analysis = QueryAnalysis(
                intent="hybrid",
                confidence=0.7,
                reasoning="Query benefits from local knowledge and current information",
                keywords=keywords,
                requires_web_search=True,
                clarification_questions=self.clarification_questions(text),
            )
        else:
            analysis = QueryAnalysis(
                intent="local",
                confidence=0.8,
                reasoning="Query can be answered from the local knowledge base",
                keywords=keywords,
                requires_web_search=False,
                clarification_questions=self.clarification_questions(text),
            )

        logger.info(
            "Classified as %s (confidence=%.2f, web_search=%s)",
            analysis.intent, analysis.confidence, analysis.requires_web_search,
        )
        return analysis

    # -----------------------------------------------------------------------
    # Individual checks (expect trimmed, lowercased text)
    # -----------------------------------------------------------------------

    def is_simple(self, lowered: str) -> bool:
        if any(p.match(lowered) for p in SIMPLE_PATTERNS):
            return True
        # One or two words with no domain term: too little to retrieve on
        if len(lowered.split()) <= 2:
            return not self._trigger.search(lowered)
        return False

    def needs_web_search(self, lowered: str) -> bool:
        if any(p.search(lowered) for p in WEB_SEARCH_PATTERNS):
            return True
        return bool(self._recency_topic.search(lowered))

    def is_hybrid(self, lowered: str) -> bool:
        if any(p.search(lowered) for p in HYBRID_PATTERNS):
            return True
        return bool(self._surname.search(lowered))

    # -----------------------------------------------------------------------
    # Clarification helpers (fill QueryAnalysis.clarification_questions)
    # -----------------------------------------------------------------------

    def needs_clarification(self, text: str) -> bool:
        """True only for extremely vague queries with no domain terms."""
        lowered = text.lower()
        vague = (
            len(text) < 8
            or ("what" in lowered and len(text) < 12)
            or ("who" in lowered and len(text) < 10)
        )
        return vague and not self._trigger.search(lowered)

    def clarification_questions(self, text: str) -> list[str]:
        if not self.needs_clarification(text):
            return []
        lowered = text.lower()
        if "professor" in lowered or "faculty" in lowered:
            return [
                "Which department are you interested in?",
                "Are you looking for a specific professor or general faculty information?",
            ]
        if "hall" in lowered or "hostel" in lowered:
            return [
                "Which hall or hostel are you asking about?",
                "Are you looking for accommodation details or general information?",
            ]
        return ["Could you provide more specific details about what you're looking for?"]


# ---------------------------------------------------------------------------
# Keyword Extraction
# ---------------------------------------------------------------------------


def extract_keywords(text: str) -> list[str]:
    """
    Lowercase, strip punctuation, split on whitespace, then drop stop words
    and tokens of two characters or fewer. Source order and duplicates are
    kept.
    """
    cleaned = _NON_WORD.sub("", text.lower())
    return [
        word for word in cleaned.split()
        if len(word) > 2 and word not in STOP_WORDS
    ]
