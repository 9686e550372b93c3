# =============================================================================
# Answer Generator — Final User-Facing Response
# =============================================================================
#
# Turns the synthesizer's evidence bundle plus recent conversation history
# into the answer the user sees, with one generative-model call.
#
# PROMPT STRUCTURE:
#   system — persona and style (friendly senior student who knows campus)
#   user   — recent history (last 4 turns) with a follow-up resolution
#            instruction, the current query, the evidence block, the
#            synthesizer's reasoning and recommendations, answering rules,
#            clarification questions when there is no evidence at all
#
# DESIGN DECISION: Confidence is passed through, never recomputed.
# The synthesizer owns confidence. The model's text is returned verbatim.
#
# DESIGN DECISION: Sources are evidence types, not documents.
# "Local Knowledge Base" and/or "Web Search Results", based on which
# evidence lists were non-empty.
#
# FAILURE CONTRACT: generate() never raises. Any model failure (including
# no provider configured) becomes a 0.1-confidence apology. This is the
# last stage before the user, so nothing behind it can catch an error.
# =============================================================================

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from app.agents.errors import GenerationFailure
from app.agents.history import ConversationTurn, recent_turns
from app.agents.institution import DEFAULT_INSTITUTION, InstitutionProfile
from app.agents.synthesizer import ReasoningResult
from app.services.llm import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

HISTORY_TURNS = 4
FALLBACK_CONFIDENCE = 0.1
FALLBACK_RESPONSE = (
    "I apologize, but I encountered an error while generating a response. "
    "Please try rephrasing your question or try again in a moment."
)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class GenerationMetadata:
    model: str
    tokens_used: int
    generation_time_ms: float


@dataclass
class SummarizedResponse:
    response: str
    confidence: float
    sources: list[str]
    metadata: GenerationMetadata


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are {assistant}, the AI assistant for {institution}. Act like a "
    "friendly, knowledgeable senior student who knows the institute inside "
    "out.\n\n"
    "Personality:\n"
    "- Warm, approachable and supportive\n"
    "- Conversational and natural, not robotic\n"
    "- Professional when needed, but never overly formal"
)

ANSWER_RULES = (
    "How to answer:\n"
    "1. {opening}\n"
    "2. Prioritise {institution}-specific facts (halls, departments, "
    "professors, events, library, student bodies) when relevant.\n"
    "3. If information is missing or outdated, say so and suggest checking "
    "official {institution} sources. Never invent facts the context does "
    "not support.\n"
    "4. Only ask for clarification if there is NO information from either "
    "the knowledge base or web search. Otherwise give the best answer the "
    "available information supports.\n"
    "5. Keep answers short and direct, in a student-friendly voice.\n"
    "6. Only add a follow-up suggestion if it is directly relevant."
)

FIRST_MESSAGE_OPENING = (
    'Begin with: "Hello! I\'m {assistant}, your {institution} AI assistant."'
)
FOLLOW_UP_OPENING = (
    "Read the conversation history first. Pronouns (he/she/his/her/their/"
    "this/that) and requests like \"more details\" refer to people or topics "
    "mentioned there. Answer about that person or topic directly; do not "
    "give a generic reply."
)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class AnswerGenerator:
    """Single-call LLM answer generation with a guaranteed fallback."""

    name = "Answer Generator"
    description = "Generates the final user-facing response with the configured LLM"

    def __init__(
        self,
        llm: LLMProvider | None,
        institution: InstitutionProfile = DEFAULT_INSTITUTION,
    ) -> None:
        self.llm = llm
        self.institution = institution

    async def generate(
        self,
        query: str,
        reasoning: ReasoningResult,
        web_search_enabled: bool = False,
        is_first_message: bool = False,
        history: Sequence[ConversationTurn] = (),
    ) -> SummarizedResponse:
        start = time.perf_counter()
        try:
            response = await self._complete(query, reasoning, is_first_message, history)
        except Exception as exc:
            logger.exception("Answer generation failed, returning fallback: %s", exc)
            return SummarizedResponse(
                response=FALLBACK_RESPONSE,
                confidence=FALLBACK_CONFIDENCE,
                sources=[],
                metadata=GenerationMetadata(
                    model="n/a",
                    tokens_used=0,
                    generation_time_ms=(time.perf_counter() - start) * 1000,
                ),
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Answer generated: model=%s, tokens=%d+%d, %.0fms (web_search=%s)",
            response.model, response.input_tokens, response.output_tokens,
            elapsed_ms, web_search_enabled,
        )
        return SummarizedResponse(
            response=response.content,
            confidence=reasoning.context.confidence,
            sources=evidence_sources(reasoning),
            metadata=GenerationMetadata(
                model=response.model,
                tokens_used=response.input_tokens + response.output_tokens,
                generation_time_ms=elapsed_ms,
            ),
        )

    async def probe(self) -> bool:
        """Health check: a trivial model call succeeds."""
        if self.llm is None:
            return False
        return await self.llm.ping()

    async def _complete(
        self,
        query: str,
        reasoning: ReasoningResult,
        is_first_message: bool,
        history: Sequence[ConversationTurn],
    ) -> LLMResponse:
        if self.llm is None:
            raise GenerationFailure("no LLM provider configured")
        try:
            response = await self.llm.complete(
                messages=[{
                    "role": "user",
                    "content": self.build_prompt(
                        query, reasoning, is_first_message, history,
                    ),
                }],
                system=self._fill(SYSTEM_PROMPT),
            )
        except Exception as exc:
            raise GenerationFailure(str(exc) or type(exc).__name__) from exc
        if not response.content.strip():
            raise GenerationFailure("model returned an empty response")
        return response

    # -----------------------------------------------------------------------
    # Prompt assembly
    # -----------------------------------------------------------------------

    def build_prompt(
        self,
        query: str,
        reasoning: ReasoningResult,
        is_first_message: bool,
        history: Sequence[ConversationTurn],
    ) -> str:
        context = reasoning.context
        sections = []

        turns = recent_turns(history, HISTORY_TURNS)
        if turns:
            lines = "\n".join(
                f"{i}. {'User' if t.role == 'user' else 'You (assistant)'}: {t.content}"
                for i, t in enumerate(turns, 1)
            )
            sections.append(
                "Conversation history (read this first):\n"
                f"{lines}\n\n"
                f'The current question "{query}" is likely a follow-up. Resolve '
                "pronouns and vague references against the history above."
            )

        sections.append(f'Current user query:\n"{query}"')
        sections.append(
            "Knowledge and reasoning:\n"
            f"- Context from knowledge base/web:\n{context.combined_context}\n"
            f"- Analysis: {context.reasoning}\n"
            "- Recommendations: "
            f"{', '.join(reasoning.recommendations) or 'None'}"
        )

        opening = FIRST_MESSAGE_OPENING if is_first_message else FOLLOW_UP_OPENING
        sections.append(self._fill(ANSWER_RULES.replace("{opening}", opening)))

        if reasoning.requires_clarification and reasoning.clarification_questions:
            questions = "\n".join(f"- {q}" for q in reasoning.clarification_questions)
            sections.append(f"No information was found. Ask naturally:\n{questions}")

        return "\n\n---\n\n".join(sections)

    def _fill(self, template: str) -> str:
        return template.format(
            assistant=self.institution.assistant_name,
            institution=self.institution.name,
        )


def evidence_sources(reasoning: ReasoningResult) -> list[str]:
    sources = []
    if reasoning.context.local_knowledge:
        sources.append("Local Knowledge Base")
    if reasoning.context.web_insights:
        sources.append("Web Search Results")
    return sources
