# =============================================================================
# Web Search Aggregator — Enhance, Dispatch, Merge, Rank
# =============================================================================
#
# Queries the enabled search providers and turns their combined output into
# one deduplicated, institution-aware ranking.
#
# PIPELINE (per call):
#   1. enhance_query()   — resolve follow-ups ("his papers") against recent
#                          history, add institution context to bare staff or
#                          campus queries, add " official" to detail queries
#   2. tiered dispatch   — careers queries: careers subdomain first (need 2)
#                          person/staff queries: official sites first (need 3)
#                          everything else: straight to general fan-out
#   3. general fan-out   — every enabled provider concurrently, each call
#                          isolated with its own timeout (all-settled)
#   4. merge_and_rank()  — dedupe by hostname+path, apply boosts/penalty,
#                          stable sort by adjusted relevance
#   5. top N             — default 10
#
# DESIGN DECISION: Never raise for provider trouble.
# One failing provider is dropped and logged. If every enabled provider
# fails, SearchAggregateFailure is raised internally and converted here into
# an empty response with `error` set, so the orchestrator always receives a
# WebSearchResponse.
#
# DESIGN DECISION: One time budget for the whole stage.
# Each provider call has its own timeout, and the stage as a whole runs
# under `budget`. A provider that times out is not called again within the
# same request, so one hanging provider costs one timeout, not three
# (site tier, subdomain batch, fan-out). Results are written into the
# per-request _SearchRun as each call finishes, so a stage timeout keeps
# everything already collected and sets `error`.
#
# DESIGN DECISION: Tier detection on the enhanced query.
# A follow-up like "his research papers" only looks like a staff query after
# enhancement rewrites it to "<Name> <Institution> professor details".
#
# DESIGN DECISION: Dedupe on hostname + path, case-insensitive.
# Query strings and fragments are dropped from the key, so tracking
# parameters (?utm_source=...) never produce a second copy of a page.
# =============================================================================

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from app.agents.errors import SearchAggregateFailure, SearchProviderFailure
from app.agents.history import ConversationTurn, recent_turns
from app.agents.institution import DEFAULT_INSTITUTION, InstitutionProfile
from app.services.search_providers import SearchProvider, WebSearchResult

logger = logging.getLogger(__name__)

PERSON_TIER_THRESHOLD = 3
CAREER_TIER_THRESHOLD = 2
FOLLOW_UP_TURNS = 3

OFFICIAL_BOOST = 0.5
CAREER_BOOST = 0.3
COMMUNITY_BOOST = 0.3
MENTION_BOOST = 0.2
UNRELATED_PENALTY = 0.4

FOLLOW_UP = re.compile(r"\b(his|her|their|him|them|this|that|more|details)\b", re.IGNORECASE)
TITLED_NAME = re.compile(r"(?:Professor|Prof\.?|Dr\.?)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)")
DIRECTOR_NAME = re.compile(
    r"(?i:director)\b.*?(?:(?i:professor|prof\.?|dr\.?)\s+)?"
    r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)"
)
DETAIL_WORDS = ("details", "about", "information")


@dataclass
class WebSearchResponse:
    results: list[WebSearchResult]
    total_found: int
    query: str
    enhanced_query: str
    search_time_ms: float
    failed_providers: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class _SearchRun:
    """Bookkeeping for one search() call, filled in place as calls finish."""

    batches: list[list[WebSearchResult]] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    stalled: set[str] = field(default_factory=set)

    def slot(self) -> list[WebSearchResult]:
        """Reserve the next batch, so results keep dispatch order."""
        batch: list[WebSearchResult] = []
        self.batches.append(batch)
        return batch

    def results(self) -> list[WebSearchResult]:
        return [result for batch in self.batches for result in batch]


def _term_pattern(terms: Iterable[str]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in terms) + ")")


# ---------------------------------------------------------------------------
# Pure ranking helpers
# ---------------------------------------------------------------------------


def normalize_link(link: str) -> str:
    """Lowercased hostname+path; the raw link, lowercased, if unparseable."""
    try:
        parts = urlsplit(link)
    except ValueError:
        return link.lower()
    if not parts.hostname:
        return link.lower()
    return f"{parts.hostname}{parts.path}".lower()


def dedupe_results(results: Iterable[WebSearchResult]) -> list[WebSearchResult]:
    """First occurrence of each normalised link wins."""
    seen: set[str] = set()
    unique = []
    for result in results:
        key = normalize_link(result.link)
        if key not in seen:
            seen.add(key)
            unique.append(result)
    return unique


def adjusted_relevance(
    result: WebSearchResult, institution: InstitutionProfile,
) -> float:
    link = result.link.lower()
    title = result.title.lower()
    snippet = result.snippet.lower()
    score = result.relevance

    if any(domain in link for domain in institution.official_domains):
        score += OFFICIAL_BOOST
    if institution.career_domain in link and any(
        term in title for term in institution.career_title_terms
    ):
        score += CAREER_BOOST
    if any(domain in link for domain in institution.community_domains):
        score += COMMUNITY_BOOST
    if any(term in title or term in snippet for term in institution.mention_terms):
        score += MENTION_BOOST
    if (
        any(term in link for term in institution.penalty_link_terms)
        or any(term in title for term in institution.penalty_title_terms)
        or any(term in snippet for term in institution.penalty_snippet_terms)
    ):
        score -= UNRELATED_PENALTY
    return round(score, 4)


def merge_and_rank(
    results: Iterable[WebSearchResult],
    institution: InstitutionProfile = DEFAULT_INSTITUTION,
) -> list[WebSearchResult]:
    """
    Deduplicate, re-score and sort. Pure: input results are not mutated.

    sorted() is stable, so equal scores keep their provider order.
    """
    rescored = [
        dataclasses.replace(r, relevance=adjusted_relevance(r, institution))
        for r in dedupe_results(results)
    ]
    return sorted(rescored, key=lambda r: r.relevance, reverse=True)


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class WebSearchAggregator:
    """Fan-out web search over a fixed provider registry."""

    name = "Web Search Aggregator"
    description = "Searches the web across multiple providers with institution-aware ranking"

    def __init__(
        self,
        providers: Sequence[SearchProvider],
        institution: InstitutionProfile = DEFAULT_INSTITUTION,
        timeout: float = 8.0,
        result_limit: int = 10,
        budget: float = 10.0,
    ) -> None:
        self.providers = list(providers)
        self.institution = institution
        self.timeout = timeout
        self.result_limit = result_limit
        self.budget = budget

        self._staff = _term_pattern(institution.staff_terms)
        self._career = _term_pattern(institution.career_terms)
        self._role = _term_pattern(institution.role_words)
        self._surname = _term_pattern(institution.surnames)
        self._campus = _term_pattern(institution.campus_words)

    # -----------------------------------------------------------------------
    # Registry
    # -----------------------------------------------------------------------

    def enabled_providers(self) -> list[str]:
        return [p.name for p in self.providers if p.enabled]

    def credential_status(self) -> str:
        """"missing", "limited" (keyless DuckDuckGo only) or "present"."""
        enabled = self.enabled_providers()
        if not enabled:
            return "missing"
        if enabled == ["duckduckgo"]:
            return "limited"
        return "present"

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def search(
        self,
        query: str,
        history: Sequence[ConversationTurn] = (),
    ) -> WebSearchResponse:
        start = time.perf_counter()
        enhanced = self.enhance_query(query, history)
        logger.info("Web search: '%s' (enhanced: '%s')", query[:80], enhanced[:120])

        run = _SearchRun()
        error = None
        try:
            await asyncio.wait_for(self._dispatch(enhanced, run), self.budget)
        except asyncio.TimeoutError:
            error = f"web search exceeded its {self.budget:g}s budget"
            logger.warning(
                "%s, keeping %d results collected so far",
                error, len(run.results()),
            )
        except SearchAggregateFailure as exc:
            logger.warning("Web search degraded to no results: %s", exc)
            error = str(exc)

        ranked = merge_and_rank(run.results(), self.institution)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Web search complete: %d unique results in %.0fms",
            len(ranked), elapsed_ms,
        )
        return WebSearchResponse(
            results=ranked[: self.result_limit],
            total_found=len(ranked),
            query=query,
            enhanced_query=enhanced,
            search_time_ms=elapsed_ms,
            failed_providers=list(run.failed),
            error=error,
        )

    def enhance_query(
        self,
        query: str,
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        """Rewrite the query for better web-search precision."""
        if history and FOLLOW_UP.search(query):
            resolved = self._resolve_follow_up(history)
            if resolved:
                logger.info("Follow-up resolved to '%s'", resolved)
                return resolved

        lowered = query.lower()
        enhanced = query
        needs_context = (
            self._role.search(lowered)
            or self._surname.search(lowered)
            or self._campus.search(lowered)
        )
        if needs_context and not self.institution.mentions_institution(lowered):
            enhanced = f"{query} {self.institution.name}"

        if any(word in lowered for word in DETAIL_WORDS):
            if "official" not in enhanced and "bio" not in enhanced:
                enhanced = f"{enhanced} official"
        return enhanced

    def is_career_query(self, query: str) -> bool:
        lowered = query.lower()
        if self._career.search(lowered):
            return True
        return bool(re.search(r"\bjobs?\b", lowered)) and (
            "campus" in lowered or self.institution.mentions_institution(lowered)
        )

    def is_person_query(self, query: str) -> bool:
        """Staff/person lookups. Careers queries are never person queries."""
        if self.is_career_query(query):
            return False
        return bool(self._staff.search(query.lower()))

    async def probe(self) -> bool:
        """True if at least one enabled provider answers a test query."""
        enabled = [p for p in self.providers if p.enabled]
        if not enabled:
            return False
        outcomes = await asyncio.gather(
            *(self._call(p, "test query") for p in enabled),
            return_exceptions=True,
        )
        return any(not isinstance(o, BaseException) for o in outcomes)

    # -----------------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------------

    async def _dispatch(self, query: str, run: _SearchRun) -> None:
        if self.is_career_query(query):
            found = await self._career_search(query, run)
            threshold, label = CAREER_TIER_THRESHOLD, "careers"
        elif self.is_person_query(query):
            found = await self._site_search(query, run)
            threshold, label = PERSON_TIER_THRESHOLD, "official-site"
        else:
            await self._fan_out(query, run)
            return

        if found >= threshold:
            logger.info("%s tier returned %d results, skipping fan-out", label, found)
            return
        logger.info(
            "%s tier returned %d results (< %d), expanding to fan-out",
            label, found, threshold,
        )
        try:
            await self._fan_out(query, run)
        except SearchAggregateFailure:
            if not found:
                raise
            logger.warning("Fan-out failed, keeping %d %s results", found, label)

    def _site_provider(self) -> SearchProvider | None:
        for provider in self.providers:
            if provider.enabled and provider.supports_site_search:
                return provider
        return None

    async def _site_search(self, query: str, run: _SearchRun) -> int:
        """Main site first, then the subdomains together. Returns the hit count."""
        provider = self._site_provider()
        if provider is None:
            logger.info("No site-capable provider enabled, skipping site search")
            return 0

        main, *subdomains = self.institution.site_search_domains
        first = run.slot()
        await self._call_settled(provider, f"{query} site:{main}", first, run)
        rest = [run.slot() for _ in subdomains]
        await asyncio.gather(*(
            self._call_settled(provider, f"{query} site:{domain}", batch, run)
            for domain, batch in zip(subdomains, rest)
        ))
        return len(first) + sum(len(batch) for batch in rest)

    async def _career_search(self, query: str, run: _SearchRun) -> int:
        provider = self._site_provider()
        if provider is None:
            logger.info("No site-capable provider enabled, skipping careers search")
            return 0

        inst = self.institution
        queries = [f"{query} site:{inst.career_domain}"] + [
            f"{query} {inst.career_context} site:{domain}"
            for domain in inst.career_search_domains
        ]
        batches = [run.slot() for _ in queries]
        await asyncio.gather(*(
            self._call_settled(provider, q, batch, run)
            for q, batch in zip(queries, batches)
        ))
        return sum(len(batch) for batch in batches)

    async def _fan_out(self, query: str, run: _SearchRun) -> None:
        enabled = [p for p in self.providers if p.enabled]
        if not enabled:
            logger.warning("No web search providers enabled")
            return

        batches = [run.slot() for _ in enabled]
        outcomes = await asyncio.gather(
            *(
                self._call_into(p, query, batch, run)
                for p, batch in zip(enabled, batches)
            ),
            return_exceptions=True,
        )

        dropped = 0
        for provider, outcome in zip(enabled, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Provider %s dropped: %s", provider.name, outcome)
                run.failed.append(provider.name)
                dropped += 1

        if dropped == len(enabled):
            raise SearchAggregateFailure(
                f"all {len(enabled)} enabled providers failed: {', '.join(run.failed)}"
            )

    async def _call(
        self,
        provider: SearchProvider,
        query: str,
        run: _SearchRun | None = None,
    ) -> list[WebSearchResult]:
        if run is not None and provider.name in run.stalled:
            raise SearchProviderFailure(provider.name, "timed out earlier in this search")
        try:
            return await asyncio.wait_for(provider.search(query), self.timeout)
        except asyncio.TimeoutError as exc:
            if run is not None:
                run.stalled.add(provider.name)
            raise SearchProviderFailure(provider.name, "timed out") from exc

    async def _call_into(
        self,
        provider: SearchProvider,
        query: str,
        batch: list[WebSearchResult],
        run: _SearchRun,
    ) -> None:
        batch.extend(await self._call(provider, query, run))

    async def _call_settled(
        self,
        provider: SearchProvider,
        query: str,
        batch: list[WebSearchResult],
        run: _SearchRun,
    ) -> None:
        """Site-tier call: any failure counts as zero results."""
        try:
            await self._call_into(provider, query, batch, run)
        except Exception as exc:
            logger.warning("Site search via %s failed: %s", provider.name, exc)

    # -----------------------------------------------------------------------
    # Follow-up resolution
    # -----------------------------------------------------------------------

    def _resolve_follow_up(self, history: Sequence[ConversationTurn]) -> str | None:
        name = self.institution.name
        for turn in reversed(recent_turns(history, FOLLOW_UP_TURNS)):
            match = TITLED_NAME.search(turn.content)
            if match:
                return f"{match.group(1)} {name} professor details"
            if "director" in turn.content.lower():
                match = DIRECTOR_NAME.search(turn.content)
                if match:
                    return f"{match.group(1)} {name} director professor details"
        return None
