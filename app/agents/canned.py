# =============================================================================
# Canned-Response Generator — Zero-Latency Replies for Trivial Queries
# =============================================================================
#
# Invoked only when the classifier sets requires_full_pipeline=False.
# Matches the normalised query against the same phrase families the
# classifier uses and returns a pre-authored reply. No I/O, cannot fail.
#
# DESIGN DECISION: Ordered table instead of an if-chain.
# Each entry is (pattern, reply template, confidence, source label, type).
# The first match wins, so more specific patterns come first. Reply texts
# are templates over the institution and assistant names.
# =============================================================================

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Literal

from app.agents.institution import DEFAULT_INSTITUTION, InstitutionProfile

logger = logging.getLogger(__name__)

ResponseType = Literal["greeting", "acknowledgment", "system_info", "goodbye", "help"]


@dataclass(frozen=True)
class SimpleResponse:
    response: str
    confidence: float
    sources: list[str]
    response_type: ResponseType
    processing_time_ms: float


@dataclass(frozen=True)
class _CannedReply:
    pattern: re.Pattern[str]
    template: str
    confidence: float
    source: str
    response_type: ResponseType


# ---------------------------------------------------------------------------
# Reply Table
# ---------------------------------------------------------------------------
# Templates may use {assistant} and {institution}.
# ---------------------------------------------------------------------------

GREETING_REPLIES = (
    "Hello! I'm {assistant}, your AI assistant for {institution}. I can help "
    "you with information about the institute, faculty, departments, campus "
    "life, and much more. What would you like to know?",
    "Hi there! I'm here to help you with anything related to {institution}. "
    "Feel free to ask me about professors, departments, campus facilities, "
    "or any other questions you might have!",
)

CANNED_REPLIES: list[_CannedReply] = [
    _CannedReply(
        re.compile(r"^(hi|hello|hey|good morning|good afternoon|good evening|good night)$"),
        GREETING_REPLIES[0], 0.95, "System Response", "greeting",
    ),
    _CannedReply(
        re.compile(r"^(hi there|hello there|hey there)$"),
        GREETING_REPLIES[1], 0.95, "System Response", "greeting",
    ),
    _CannedReply(
        re.compile(r"^(yes|yes please|ok|okay|sure|alright|fine|good|great)$"),
        "Great! How can I assist you today?",
        0.9, "System Response", "acknowledgment",
    ),
    _CannedReply(
        re.compile(r"^(thanks|thank you)$"),
        "You're welcome! Is there anything else I can help you with?",
        0.9, "System Response", "acknowledgment",
    ),
    _CannedReply(
        re.compile(r"^(no|no thanks|no thank you)$"),
        "No problem! Feel free to ask if you need anything else.",
        0.9, "System Response", "acknowledgment",
    ),
    _CannedReply(
        re.compile(r"^(what can you do|what are you|who are you)$"),
        "I'm {assistant}, an AI assistant specialized in {institution} "
        "information. I can help you with:\n\n"
        "• Faculty and professor information\n"
        "• Department details and programs\n"
        "• Campus facilities and infrastructure\n"
        "• Student life and activities\n"
        "• Admission and academic information\n"
        "• Research and publications\n\n"
        "Just ask me anything about {institution}!",
        0.95, "System Information", "system_info",
    ),
    _CannedReply(
        re.compile(r"^(what is this|what is kgp gpt|what is this system)$"),
        "{assistant} is a multi-agent assistant for {institution}. It combines "
        "the institute's local knowledge base with live web search to answer "
        "questions about the institute, its faculty, students and activities.",
        0.95, "System Information", "system_info",
    ),
    _CannedReply(
        re.compile(r"^help$"),
        "I'm here to help! You can ask me about:\n\n"
        "• Institute info: departments, programs, facilities\n"
        "• Faculty: professors, research, publications\n"
        "• Academics: courses, admissions, exams\n"
        "• Campus life: hostels, mess, activities, festivals\n"
        "• Research: projects, labs, collaborations\n\n"
        "Just type your question naturally and I'll find the information you need.",
        0.95, "System Help", "help",
    ),
    _CannedReply(
        re.compile(r"^how are you$"),
        "I'm doing great, thank you for asking! I'm ready to help you with any "
        "questions about {institution}. What would you like to know?",
        0.9, "System Response", "acknowledgment",
    ),
    _CannedReply(
        re.compile(r"^(got it|understood|i see|i understand|noted)$"),
        "Perfect! Let me know if you need any clarification or have other questions.",
        0.9, "System Response", "acknowledgment",
    ),
    _CannedReply(
        re.compile(r"^(bye|goodbye|see you|take care)$"),
        "Goodbye! Feel free to come back anytime if you have more questions "
        "about {institution}. Have a great day!",
        0.95, "System Response", "goodbye",
    ),
    _CannedReply(
        re.compile(r"^(start over|reset|clear|new conversation)$"),
        "Sure! Starting fresh. How can I help you today?",
        0.9, "System Response", "acknowledgment",
    ),
    _CannedReply(
        re.compile(r"^(test|testing|check)$"),
        "System is working! I'm ready to help you with {institution} "
        "information. What would you like to know?",
        0.95, "System Test", "acknowledgment",
    ),
]

SHORT_QUERY_REPLY = (
    "I'm here to help! Could you tell me more about what you're looking for? "
    "I can assist with information about {institution}'s faculty, departments, "
    "campus life, and much more."
)

DEFAULT_REPLY = (
    "I'm {assistant}, your AI assistant for {institution}. I can help you with "
    "information about the institute, faculty, departments, and campus life. "
    "What specific information are you looking for?"
)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class CannedResponder:
    """Pre-authored replies for greetings, acknowledgments, help and farewells."""

    name = "Canned Response Generator"
    description = "Handles greetings, acknowledgments and help without retrieval"

    def __init__(self, institution: InstitutionProfile = DEFAULT_INSTITUTION):
        self.institution = institution

    def respond(self, text: str) -> SimpleResponse:
        start = time.perf_counter()
        normalised = text.strip().lower()

        for entry in CANNED_REPLIES:
            if entry.pattern.match(normalised):
                text_out = self._fill(entry.template)
                confidence = entry.confidence
                sources = [entry.source]
                response_type = entry.response_type
                break
        else:
            if len(normalised.split()) <= 2:
                text_out = self._fill(SHORT_QUERY_REPLY)
                response_type = "help"
            else:
                text_out = self._fill(DEFAULT_REPLY)
                response_type = "system_info"
            confidence = 0.8
            sources = ["System Response"]

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Canned %s response in %.2fms", response_type, elapsed_ms,
        )
        return SimpleResponse(
            response=text_out,
            confidence=confidence,
            sources=sources,
            response_type=response_type,
            processing_time_ms=elapsed_ms,
        )

    def greeting_texts(self) -> list[str]:
        """Every greeting reply this responder can produce."""
        return [self._fill(template) for template in GREETING_REPLIES]

    def _fill(self, template: str) -> str:
        return template.format(
            assistant=self.institution.assistant_name,
            institution=self.institution.name,
        )
