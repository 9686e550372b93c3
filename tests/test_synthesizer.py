# =============================================================================
# Unit Tests — Context Synthesizer
# =============================================================================

from __future__ import annotations

from app.agents.history import ConversationTurn
from app.agents.retriever import RetrievedDocument
from app.agents.synthesizer import (
    CONFLICT_NOTE,
    NO_EVIDENCE,
    ContextSynthesizer,
    combine_context,
    detect_conflicts,
    score_confidence,
)
from app.services.search_providers import WebSearchResult


def _doc(content: str, score: float) -> RetrievedDocument:
    return RetrievedDocument(id=content[:8], content=content, score=score)


def _web(title: str, snippet: str, relevance: float) -> WebSearchResult:
    return WebSearchResult(
        title=title, link=f"https://example.com/{title}", snippet=snippet,
        source="example.com", relevance=relevance, search_engine="Fake",
    )


class TestSynthesize:
    def setup_method(self):
        self.synthesizer = ContextSynthesizer()

    def test_single_strong_local_document_without_web_search(self):
        result = self.synthesizer.synthesize(
            "where is nehru hall",
            local_docs=[_doc("Nehru Hall is next to the main building.", 0.9)],
            web_search_enabled=False,
        )
        assert result.context.confidence >= 0.7
        assert result.context.confidence == 0.7
        assert result.requires_clarification is False
        assert result.context.local_knowledge == [
            "[Local KB] Nehru Hall is next to the main building."
        ]

    def test_local_and_web_evidence(self):
        result = self.synthesizer.synthesize(
            "spring fest dates",
            local_docs=[_doc("Spring Fest is the annual cultural festival.", 0.8)],
            web_results=[_web("Spring Fest 2025", "Held in late January.", 0.9)],
            web_search_enabled=True,
        )
        assert result.context.confidence == 0.9
        assert result.context.web_insights == ["[Web] Spring Fest 2025: Held in late January."]
        assert "Combining local knowledge with current web information" in result.recommendations

    def test_low_scores_are_filtered(self):
        result = self.synthesizer.synthesize(
            "tell me about halls of residence",
            local_docs=[_doc("weak match", 0.5)],
            web_results=[_web("weak", "weak", 0.6)],
            web_search_enabled=True,
        )
        assert result.context.local_knowledge == []
        assert result.context.web_insights == []
        assert result.context.confidence == 0.5
        assert result.context.combined_context == NO_EVIDENCE

    def test_web_results_ignored_when_search_did_not_run(self):
        result = self.synthesizer.synthesize(
            "spring fest dates",
            web_results=[_web("Spring Fest", "Late January", 0.9)],
            web_search_enabled=False,
        )
        assert result.context.web_insights == []

    def test_previews_are_truncated(self):
        long_text = "a" * 300
        result = self.synthesizer.synthesize(
            "long", local_docs=[_doc(long_text, 0.9)],
            web_results=[_web("t", "b" * 200, 0.9)], web_search_enabled=True,
        )
        assert result.context.local_knowledge[0] == "[Local KB] " + "a" * 200 + "..."
        assert result.context.web_insights[0] == "[Web] t: " + "b" * 150 + "..."

    def test_no_evidence_and_vague_query_requests_clarification(self):
        result = self.synthesizer.synthesize("what fees?")
        assert result.requires_clarification is True
        assert result.clarification_questions

    def test_no_evidence_but_specific_query_does_not_clarify(self):
        result = self.synthesizer.synthesize("what is the fee for the nehru hall mess")
        assert result.requires_clarification is False
        assert result.clarification_questions == []

    def test_no_evidence_at_all_is_half_confidence(self):
        result = self.synthesizer.synthesize("anything at all here", None, None, True)
        assert result.context.confidence == 0.5
        assert result.context.reasoning.startswith(NO_EVIDENCE)

    def test_reasoning_mentions_conversation_context(self):
        result = self.synthesizer.synthesize(
            "his papers",
            local_docs=[_doc("Professor Jane Doe works on robotics.", 0.9)],
            history=[ConversationTurn("user", "who is jane doe")],
        )
        assert "conversation context" in result.context.reasoning
        assert "IIT Kharagpur" in result.context.reasoning


class TestConflicts:
    def test_both_poles_of_a_family_raise_a_flag(self):
        assert detect_conflicts(["Placements increase every year", "Stipends decline"]) == [CONFLICT_NOTE]

    def test_single_pole_is_fine(self):
        assert detect_conflicts(["The food is good", "The rooms are excellent"]) == []

    def test_one_flag_per_family(self):
        evidence = ["good and bad", "rise and fall", "agree and disagree", "positive negative"]
        assert len(detect_conflicts(evidence)) == 3

    def test_conflicts_lower_confidence(self):
        synthesizer = ContextSynthesizer()
        result = synthesizer.synthesize(
            "mess food",
            local_docs=[_doc("The mess food is good.", 0.9), _doc("The mess food is bad.", 0.8)],
        )
        assert result.context.conflicting_info == [CONFLICT_NOTE]
        assert result.context.confidence == 0.6
        assert "Verify information from multiple sources" in result.recommendations
        assert "conflicting information" in result.context.combined_context


class TestConfidence:
    def test_clamped_to_floor(self):
        assert score_confidence([], [], ["c"] * 9) == 0.1

    def test_all_evidence(self):
        assert score_confidence(["l"], ["w"], []) == 0.9

    def test_web_only(self):
        assert score_confidence([], ["w"], []) == 0.6


class TestCombineContext:
    def test_sections_are_labelled(self):
        text = combine_context(["[Local KB] a"], ["[Web] b"], [])
        assert "**Local Knowledge Base (1 sources):**\n• [Local KB] a" in text
        assert "**Current Web Information (1 sources):**\n• [Web] b" in text

    def test_empty_bundle(self):
        assert combine_context([], [], []) == NO_EVIDENCE
