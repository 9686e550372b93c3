# =============================================================================
# Institution Profile — Domain Vocabulary for Routing and Ranking
# =============================================================================
#
# Everything institution-specific that the agents branch on lives here:
# the names used in replies, the official and community web domains used
# for site-restricted search and relevance boosting, and the vocabulary
# that signals a staff/person lookup, a careers question, or a campus topic.
#
# DESIGN DECISION: Frozen dataclass, not settings fields.
# These are long, rarely-changing lists that read better as code than as
# environment variables. The two display names can still be overridden
# from settings via InstitutionProfile.from_settings().
#
# The defaults describe IIT Kharagpur:
#   - Main domain: iitkgp.ac.in (all departments and schools)
#   - VGSoM (management): som.iitkgp.ac.in
#   - Career Development Cell (placements): cdc.iitkgp.ac.in
#   - Central Library, ERP portal, Students' Gymkhana subdomains
#   - RGSOIPL (law school): gateoffice.iitkgp.ac.in
#   - MetaKGP student wiki: metakgp.org
# =============================================================================

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from app.config import Settings


@dataclass(frozen=True)
class InstitutionProfile:
    name: str = "IIT Kharagpur"
    assistant_name: str = "KGP GPT"

    # Tokens meaning "the query already names the institution"
    aliases: tuple[str, ...] = ("iit", "kharagpur", "kgp")
    # Phrases in a result's title/snippet that mention the institution
    mention_terms: tuple[str, ...] = ("iit kharagpur", "iitkgp")

    official_domains: tuple[str, ...] = (
        "iitkgp.ac.in",
        "som.iitkgp.ac.in",
        "cdc.iitkgp.ac.in",
        "library.iitkgp.ac.in",
        "erp.iitkgp.ac.in",
        "gymkhana.iitkgp.ac.in",
        "gateoffice.iitkgp.ac.in",
    )
    community_domains: tuple[str, ...] = (
        "metakgp.org",
        "kgpchronicle",
        "wiki.metakgp",
    )

    # Site-restricted search for staff/person queries. The first entry is
    # searched on its own; the rest are searched concurrently after it.
    site_search_domains: tuple[str, ...] = (
        "iitkgp.ac.in",
        "som.iitkgp.ac.in",
        "cdc.iitkgp.ac.in",
        "library.iitkgp.ac.in",
        "erp.iitkgp.ac.in",
        "gymkhana.iitkgp.ac.in",
        "metakgp.org",
        "gateoffice.iitkgp.ac.in",
    )

    # Careers / placement tier
    career_domain: str = "cdc.iitkgp.ac.in"
    career_context: str = "cdc placement"
    career_search_domains: tuple[str, ...] = ("iitkgp.ac.in", "metakgp.org")
    career_terms: tuple[str, ...] = (
        "cdc",
        "career development cell",
        "placement",
        "internship",
        "recruiter",
        "company visit",
        "campus placement",
    )
    career_title_terms: tuple[str, ...] = (
        "placement", "career", "job", "internship",
    )

    # Staff, schools and administrative units that signal a person lookup
    staff_terms: tuple[str, ...] = (
        "professor", "prof.", "prof ", "dr.", "dr ", "faculty", "teacher",
        "director", "head of department", "hod",
        "school of", "vgsom", "rgsoipl", "department of", "dept of",
        "entrepreneurship", "quality and reliability", "telecommunications",
        "infrastructure design",
        "erp", "library", "central library", "gymkhana", "tsg",
    )
    role_words: tuple[str, ...] = (
        "professor", "faculty", "teacher", "director", "prof.", "dr.",
    )
    campus_words: tuple[str, ...] = (
        "department", "school of", "vgsom", "rgsoipl", "hall", "mess",
        "tsg", "library", "campus",
        "entrepreneurship school", "quality school",
        "telecommunications school", "infrastructure school",
    )
    surnames: tuple[str, ...] = (
        "chakladar", "chakraborty", "kumar", "singh", "patel", "sharma",
        "verma", "gupta", "tewari", "goyal", "banerjee", "chatterjee",
    )

    # Terms that keep a one- or two-word query out of the canned path
    trigger_terms: tuple[str, ...] = (
        "chakladar", "professor", "faculty", "department", "hall", "mess",
        "tsg", "fest", "iit", "kgp", "kharagpur", "admission", "placement",
        "exam", "course", "student", "research",
    )
    # "this year's X" topics that always need fresh information
    recency_topics: tuple[str, ...] = (
        "admission", "placement", "festival", "exam schedule",
        "holiday list", "academic calendar",
    )

    # Unrelated verticals that collide with staff names (e.g. doctors)
    penalty_link_terms: tuple[str, ...] = (
        "hospital", "clinic", "doctor", "surgeon",
    )
    penalty_title_terms: tuple[str, ...] = ("doctor", "surgeon")
    penalty_snippet_terms: tuple[str, ...] = ("hospital", "medical")

    @classmethod
    def from_settings(cls, settings: Settings) -> InstitutionProfile:
        return dataclasses.replace(
            cls(),
            name=settings.institution_name,
            assistant_name=settings.assistant_name,
        )

    def mentions_institution(self, text_lower: str) -> bool:
        return any(alias in text_lower for alias in self.aliases)


DEFAULT_INSTITUTION = InstitutionProfile()
