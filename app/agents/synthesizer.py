# =============================================================================
# Context Synthesizer — Evidence Bundle for the Answer Generator
# =============================================================================
#
# Merges retrieved passages and web results into a single evidence bundle:
#
#   local_knowledge  — passages with score > 0.5, 200-char previews
#   web_insights     — results with relevance > 0.6, 150-char previews
#                      (only when web search actually ran)
#   conflicting_info — one flag per antonym family seen on both poles
#   confidence       — 0.5 base, +0.2 local, +0.1 web, +0.1 both,
#                      −0.1 per conflict, clamped to [0.1, 1.0]
#   combined_context — labelled sections, used verbatim in the prompt
#
# DESIGN DECISION: Keyword-polarity conflict detection.
# A flag is raised whenever words from both poles of a family appear
# anywhere in the evidence. It is coarse and can fire on unrelated
# sentences; it only lowers confidence and adds a note to the prompt.
#
# DESIGN DECISION: Clarification is a last resort.
# Only requested when there is no evidence at all AND the query is short
# and vague. Any evidence means the generator answers with what it has.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.agents.history import ConversationTurn
from app.agents.institution import DEFAULT_INSTITUTION, InstitutionProfile
from app.agents.retriever import RetrievedDocument
from app.services.search_providers import WebSearchResult

logger = logging.getLogger(__name__)

LOCAL_SCORE_THRESHOLD = 0.5
WEB_RELEVANCE_THRESHOLD = 0.6
LOCAL_PREVIEW_CHARS = 200
WEB_PREVIEW_CHARS = 150

CONFLICT_FAMILIES: list[tuple[frozenset[str], frozenset[str]]] = [
    (frozenset({"good", "excellent", "positive", "benefit"}),
     frozenset({"bad", "poor", "negative", "harm"})),
    (frozenset({"increase", "rise", "grow"}),
     frozenset({"decrease", "fall", "decline"})),
    (frozenset({"support", "agree", "confirm"}),
     frozenset({"oppose", "disagree", "refute"})),
]
CONFLICT_NOTE = "Potential contradiction detected between positive and negative information"
NO_EVIDENCE = "Limited information available from both local knowledge base and web search."

_NON_WORD = re.compile(r"[^\w\s]")


@dataclass
class SynthesizedContext:
    local_knowledge: list[str]
    web_insights: list[str]
    conflicting_info: list[str]
    confidence: float
    reasoning: str
    combined_context: str


@dataclass
class ReasoningResult:
    context: SynthesizedContext
    recommendations: list[str] = field(default_factory=list)
    requires_clarification: bool = False
    clarification_questions: list[str] = field(default_factory=list)


def _preview(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ContextSynthesizer:
    """Filters, scores and formats evidence. Pure, no I/O."""

    name = "Context Synthesizer"
    description = "Combines local knowledge and web results into one evidence bundle"

    def __init__(self, institution: InstitutionProfile = DEFAULT_INSTITUTION):
        self.institution = institution

    def synthesize(
        self,
        query: str,
        local_docs: Sequence[RetrievedDocument] | None = None,
        web_results: Sequence[WebSearchResult] | None = None,
        web_search_enabled: bool = False,
        history: Sequence[ConversationTurn] = (),
    ) -> ReasoningResult:
        local = self.local_insights(local_docs or [])
        web = self.web_insights(web_results or []) if web_search_enabled else []
        conflicts = detect_conflicts(local + web)
        confidence = score_confidence(local, web, conflicts)

        requires_clarification = self.needs_clarification(query, local, web)
        result = ReasoningResult(
            context=SynthesizedContext(
                local_knowledge=local,
                web_insights=web,
                conflicting_info=conflicts,
                confidence=confidence,
                reasoning=self._reasoning(local, web, conflicts, history),
                combined_context=combine_context(local, web, conflicts),
            ),
            recommendations=self._recommendations(local, web, conflicts),
            requires_clarification=requires_clarification,
            clarification_questions=(
                self._clarification_questions(query) if requires_clarification else []
            ),
        )
        logger.info(
            "Synthesized %d local + %d web insights (conflicts=%d, confidence=%.2f)",
            len(local), len(web), len(conflicts), confidence,
        )
        return result

    # -----------------------------------------------------------------------
    # Evidence filters
    # -----------------------------------------------------------------------

    @staticmethod
    def local_insights(docs: Sequence[RetrievedDocument]) -> list[str]:
        return [
            f"[Local KB] {_preview(doc.content, LOCAL_PREVIEW_CHARS)}"
            for doc in docs
            if doc.score > LOCAL_SCORE_THRESHOLD
        ]

    @staticmethod
    def web_insights(results: Sequence[WebSearchResult]) -> list[str]:
        return [
            f"[Web] {r.title}: {_preview(r.snippet, WEB_PREVIEW_CHARS)}"
            for r in results
            if r.relevance > WEB_RELEVANCE_THRESHOLD
        ]

    # -----------------------------------------------------------------------
    # Clarification
    # -----------------------------------------------------------------------

    @staticmethod
    def needs_clarification(query: str, local: list[str], web: list[str]) -> bool:
        if local or web:
            return False
        lowered = query.lower()
        return (
            len(query) < 10
            or ("what" in lowered and len(query) < 15)
            or ("how" in lowered and len(query) < 15)
        )

    @staticmethod
    def _clarification_questions(query: str) -> list[str]:
        questions = [
            "Could you provide more specific details about what you're looking for?",
            "Are you looking for current information or historical data?",
        ]
        if "compare" in query or "difference" in query:
            questions.append("What specific aspects would you like me to compare?")
        if "how to" in query or "guide" in query:
            questions.append(
                "Are you looking for step-by-step instructions or general guidance?"
            )
        return questions

    # -----------------------------------------------------------------------
    # Narrative
    # -----------------------------------------------------------------------

    def _reasoning(
        self,
        local: list[str],
        web: list[str],
        conflicts: list[str],
        history: Sequence[ConversationTurn],
    ) -> str:
        if local and web:
            text = (
                f"Combined local knowledge base ({len(local)} sources) with "
                f"current web information ({len(web)} sources)."
            )
        elif local:
            text = (
                f"Used the local {self.institution.name} knowledge base "
                f"({len(local)} sources)."
            )
        elif web:
            text = (
                f"Relied on current web information ({len(web)} sources) as the "
                "local knowledge base had limited relevant data."
            )
        else:
            text = NO_EVIDENCE

        if conflicts:
            text += (
                f" Detected {len(conflicts)} potential conflicts between sources;"
                " prefer the most recent and authoritative information."
            )
        if history:
            text += " Considered conversation context for follow-up references."
        return text

    @staticmethod
    def _recommendations(
        local: list[str], web: list[str], conflicts: list[str],
    ) -> list[str]:
        recommendations = []
        if not local:
            recommendations.append("Consider enabling web search for current information")
        elif not web:
            recommendations.append("Local knowledge base has relevant information")
        if conflicts:
            recommendations.append("Verify information from multiple sources")
            recommendations.append(
                "Consider the recency of web information vs local knowledge"
            )
        if local and web:
            recommendations.append("Combining local knowledge with current web information")
        return recommendations


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def detect_conflicts(evidence: Sequence[str]) -> list[str]:
    words = set(_NON_WORD.sub("", " ".join(evidence).lower()).split())
    return [
        CONFLICT_NOTE
        for positive, negative in CONFLICT_FAMILIES
        if words & positive and words & negative
    ]


def score_confidence(
    local: Sequence[str], web: Sequence[str], conflicts: Sequence[str],
) -> float:
    confidence = 0.5
    if local:
        confidence += 0.2
    if web:
        confidence += 0.1
    if local and web:
        confidence += 0.1
    confidence -= 0.1 * len(conflicts)
    return round(max(0.1, min(1.0, confidence)), 2)


def combine_context(
    local: Sequence[str], web: Sequence[str], conflicts: Sequence[str],
) -> str:
    sections = []
    if local:
        lines = "\n".join(f"• {item}" for item in local)
        sections.append(f"**Local Knowledge Base ({len(local)} sources):**\n{lines}")
    if web:
        lines = "\n".join(f"• {item}" for item in web)
        sections.append(f"**Current Web Information ({len(web)} sources):**\n{lines}")
    if conflicts:
        sections.append(
            "**Note:** Some conflicting information was detected. "
            "Prefer the most current and authoritative sources."
        )
    return "\n\n".join(sections) if sections else NO_EVIDENCE
