# =============================================================================
# Unit Tests — Web Search Aggregator
# =============================================================================
#
# Providers are replaced with in-memory fakes that record the queries they
# receive, so dispatch tiers and fan-out isolation can be asserted directly.
# =============================================================================

from __future__ import annotations

import asyncio
import time

from app.agents.errors import SearchProviderFailure
from app.agents.history import ConversationTurn
from app.agents.web_search import (
    WebSearchAggregator,
    adjusted_relevance,
    dedupe_results,
    merge_and_rank,
    normalize_link,
)
from app.agents.institution import DEFAULT_INSTITUTION
from app.services.search_providers import WebSearchResult


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _result(link: str, relevance: float = 0.5, title: str = "Result",
            snippet: str = "Some text") -> WebSearchResult:
    return WebSearchResult(
        title=title,
        link=link,
        snippet=snippet,
        source="test",
        relevance=relevance,
        search_engine="Fake",
    )


class FakeProvider:
    """Records queries; returns canned results or raises."""

    def __init__(self, name, results=(), error=None, enabled=True,
                 site=False, delay=0.0):
        self.name = name
        self.enabled = enabled
        self.supports_site_search = site
        self._results = results
        self._error = error
        self._delay = delay
        self.queries: list[str] = []

    async def search(self, query):
        self.queries.append(query)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        if callable(self._results):
            return self._results(query)
        return list(self._results)


def _per_site(query: str) -> list[WebSearchResult]:
    """One distinct result per site: operator."""
    domain = query.rsplit("site:", 1)[-1]
    return [_result(f"https://{domain}/people", title=f"Page on {domain}")]


# ---------------------------------------------------------------------------
# Test: Link normalisation and dedup
# ---------------------------------------------------------------------------


class TestDedup:
    def test_normalize_drops_query_string_and_case(self):
        assert normalize_link("HTTP://X.org/A?utm=1#top") == "x.org/a"

    def test_unparseable_link_falls_back_to_lowercase(self):
        assert normalize_link("Not A URL") == "not a url"

    def test_tracking_parameters_do_not_survive_dedup(self):
        first = _result("http://x.org/a", title="first")
        second = _result("http://x.org/a?utm=1", title="second")
        unique = dedupe_results([first, second])
        assert unique == [first]

    def test_different_paths_are_kept(self):
        assert len(dedupe_results([_result("http://x.org/a"), _result("http://x.org/b")])) == 2

    def test_merge_is_idempotent_under_duplication(self):
        results = [
            _result("https://www.iitkgp.ac.in/dept", 0.4),
            _result("https://news.example.com/story", 0.9),
            _result("https://wiki.metakgp.org/w/Halls", 0.6),
        ]
        once = merge_and_rank(results)
        tripled = merge_and_rank(results + results + results)
        assert tripled == once
        assert len({normalize_link(r.link) for r in tripled}) == len(tripled)


# ---------------------------------------------------------------------------
# Test: Relevance boosting
# ---------------------------------------------------------------------------


class TestRelevance:
    def test_official_domain_boost(self):
        r = _result("https://www.iitkgp.ac.in/department/CS", 0.5)
        assert adjusted_relevance(r, DEFAULT_INSTITUTION) == 1.0

    def test_community_domain_boost_applies_once(self):
        r = _result("https://wiki.metakgp.org/w/Halls", 0.5)
        assert adjusted_relevance(r, DEFAULT_INSTITUTION) == 0.8

    def test_career_title_boost_on_career_subdomain(self):
        r = _result("https://cdc.iitkgp.ac.in/stats", 0.5, title="Placement statistics")
        assert adjusted_relevance(r, DEFAULT_INSTITUTION) == 1.3

    def test_institution_mention_boost(self):
        r = _result("https://scholar.example.com/u/1", 0.5,
                    snippet="Associate professor at IIT Kharagpur")
        assert adjusted_relevance(r, DEFAULT_INSTITUTION) == 0.7

    def test_unrelated_vertical_penalty(self):
        r = _result("https://cityhospital.example.com/dr-sharma", 0.9,
                    title="Dr Sharma, surgeon")
        assert adjusted_relevance(r, DEFAULT_INSTITUTION) == 0.5

    def test_merge_sorts_descending_and_does_not_mutate_input(self):
        plain = _result("https://news.example.com/a", 0.9)
        official = _result("https://www.iitkgp.ac.in/a", 0.5)
        ranked = merge_and_rank([plain, official])
        assert [r.link for r in ranked] == [official.link, plain.link]
        assert official.relevance == 0.5

    def test_ties_keep_provider_order(self):
        a = _result("https://a.example.com/x", 0.6)
        b = _result("https://b.example.com/x", 0.6)
        c = _result("https://c.example.com/x", 0.6)
        assert [r.link for r in merge_and_rank([a, b, c])] == [a.link, b.link, c.link]


# ---------------------------------------------------------------------------
# Test: Query enhancement
# ---------------------------------------------------------------------------


class TestEnhanceQuery:
    def setup_method(self):
        self.aggregator = WebSearchAggregator([])

    def test_follow_up_resolves_titled_name_from_history(self):
        history = [
            ConversationTurn("user", "who is the director"),
            ConversationTurn("assistant", "The director is Professor Jane Doe."),
        ]
        enhanced = self.aggregator.enhance_query("his research papers", history)
        assert "Jane Doe" in enhanced
        assert enhanced == "Jane Doe IIT Kharagpur professor details"

    def test_follow_up_resolves_director_shape(self):
        history = [ConversationTurn("assistant", "The current director is Virendra Kumar Tewari.")]
        enhanced = self.aggregator.enhance_query("tell me more about him", history)
        assert enhanced == "Virendra Kumar Tewari IIT Kharagpur director professor details"

    def test_most_recent_turn_wins(self):
        history = [
            ConversationTurn("assistant", "Professor Alan Smith teaches thermodynamics."),
            ConversationTurn("assistant", "Dr. Priya Sen runs the robotics lab."),
        ]
        assert self.aggregator.enhance_query("her papers", history).startswith("Priya Sen")

    def test_only_last_three_turns_are_scanned(self):
        history = [ConversationTurn("assistant", "Professor Old Name retired.")] + [
            ConversationTurn("user", "ok") for _ in range(3)
        ]
        enhanced = self.aggregator.enhance_query("his papers", history)
        assert "Old Name" not in enhanced

    def test_follow_up_without_history_is_not_rewritten(self):
        assert self.aggregator.enhance_query("his research papers") == "his research papers"

    def test_role_word_gets_institution_context(self):
        assert (self.aggregator.enhance_query("professor of physics")
                == "professor of physics IIT Kharagpur")

    def test_existing_institution_mention_is_left_alone(self):
        assert self.aggregator.enhance_query("kgp professor of physics") == "kgp professor of physics"

    def test_detail_queries_get_official_suffix(self):
        assert (self.aggregator.enhance_query("information about the library")
                == "information about the library IIT Kharagpur official")

    def test_bio_queries_skip_official_suffix(self):
        assert self.aggregator.enhance_query("bio details of kgp dean") == "bio details of kgp dean"


# ---------------------------------------------------------------------------
# Test: Tier detection
# ---------------------------------------------------------------------------


class TestTierDetection:
    def setup_method(self):
        self.aggregator = WebSearchAggregator([])

    def test_staff_words_are_person_queries(self):
        assert self.aggregator.is_person_query("professor jane doe")
        assert self.aggregator.is_person_query("head of department electrical")

    def test_career_words_are_career_queries(self):
        assert self.aggregator.is_career_query("placement statistics for cse")
        assert self.aggregator.is_career_query("campus jobs for students")

    def test_career_queries_are_never_person_queries(self):
        assert not self.aggregator.is_person_query("placement director contact")

    def test_plain_queries_match_no_tier(self):
        assert not self.aggregator.is_person_query("spring fest dates")
        assert not self.aggregator.is_career_query("spring fest dates")


# ---------------------------------------------------------------------------
# Test: Dispatch and fan-out
# ---------------------------------------------------------------------------


class TestSearch:
    def test_fan_out_merges_enabled_providers(self):
        a = FakeProvider("a", [_result("https://a.example.com/1", 0.9)])
        b = FakeProvider("b", [_result("https://b.example.com/1", 0.8)])
        response = _run(WebSearchAggregator([a, b]).search("spring fest dates"))
        assert [r.link for r in response.results] == [
            "https://a.example.com/1", "https://b.example.com/1",
        ]
        assert response.enhanced_query == "spring fest dates"
        assert response.error is None

    def test_disabled_providers_are_not_called(self):
        on = FakeProvider("on", [_result("https://a.example.com/1")])
        off = FakeProvider("off", [_result("https://b.example.com/1")], enabled=False)
        _run(WebSearchAggregator([on, off]).search("spring fest dates"))
        assert off.queries == []

    def test_one_failing_provider_does_not_fail_the_others(self):
        good = FakeProvider("good", [_result("https://a.example.com/1")])
        bad = FakeProvider("bad", error=SearchProviderFailure("bad", "HTTP 500"))
        response = _run(WebSearchAggregator([bad, good]).search("spring fest dates"))
        assert len(response.results) == 1
        assert response.failed_providers == ["bad"]
        assert response.error is None

    def test_slow_provider_is_dropped_on_timeout(self):
        fast = FakeProvider("fast", [_result("https://a.example.com/1")])
        slow = FakeProvider("slow", [_result("https://b.example.com/1")], delay=1.0)
        aggregator = WebSearchAggregator([fast, slow], timeout=0.05)
        response = _run(aggregator.search("spring fest dates"))
        assert [r.link for r in response.results] == ["https://a.example.com/1"]
        assert response.failed_providers == ["slow"]

    def test_all_providers_failing_returns_empty_response(self):
        providers = [
            FakeProvider("a", error=SearchProviderFailure("a", "down")),
            FakeProvider("b", error=RuntimeError("unexpected")),
        ]
        response = _run(WebSearchAggregator(providers).search("spring fest dates"))
        assert response.results == []
        assert response.total_found == 0
        assert response.error is not None
        assert sorted(response.failed_providers) == ["a", "b"]

    def test_no_enabled_providers_returns_empty_response(self):
        response = _run(WebSearchAggregator([]).search("spring fest dates"))
        assert response.results == []
        assert response.error is None

    def test_results_are_capped(self):
        many = [_result(f"https://site{i}.example.com/", 0.5) for i in range(15)]
        response = _run(
            WebSearchAggregator([FakeProvider("a", many)]).search("spring fest dates")
        )
        assert len(response.results) == 10
        assert response.total_found == 15

    def test_person_tier_skips_fan_out_when_sites_answer(self):
        site = FakeProvider("serper", _per_site, site=True)
        other = FakeProvider("tavily", [_result("https://t.example.com/1")])
        response = _run(WebSearchAggregator([site, other]).search("professor jane doe"))
        assert other.queries == []
        assert site.queries[0] == "professor jane doe IIT Kharagpur site:iitkgp.ac.in"
        assert len(site.queries) == len(DEFAULT_INSTITUTION.site_search_domains)
        assert len(response.results) >= 3

    def test_person_tier_falls_through_when_sites_are_thin(self):
        site = FakeProvider("serper", [], site=True)
        other = FakeProvider("tavily", [_result("https://t.example.com/1")])
        response = _run(WebSearchAggregator([site, other]).search("professor jane doe"))
        assert other.queries == ["professor jane doe IIT Kharagpur"]
        assert [r.link for r in response.results] == ["https://t.example.com/1"]

    def test_failing_site_queries_count_as_empty(self):
        site = FakeProvider("serper", error=SearchProviderFailure("serper", "HTTP 429"), site=True)
        other = FakeProvider("tavily", [_result("https://t.example.com/1")])
        response = _run(WebSearchAggregator([site, other]).search("professor jane doe"))
        assert len(response.results) == 1

    def test_career_tier_queries_careers_subdomain(self):
        site = FakeProvider("serper", _per_site, site=True)
        other = FakeProvider("tavily", [_result("https://t.example.com/1")])
        _run(WebSearchAggregator([site, other]).search("placement statistics for cse"))
        assert sorted(site.queries) == sorted([
            "placement statistics for cse site:cdc.iitkgp.ac.in",
            "placement statistics for cse cdc placement site:iitkgp.ac.in",
            "placement statistics for cse cdc placement site:metakgp.org",
        ])
        assert other.queries == []

    def test_person_query_without_site_provider_goes_to_fan_out(self):
        other = FakeProvider("tavily", [_result("https://t.example.com/1")])
        _run(WebSearchAggregator([other]).search("professor jane doe"))
        assert other.queries == ["professor jane doe IIT Kharagpur"]

    def test_follow_up_search_uses_resolved_name(self):
        provider = FakeProvider("tavily", [_result("https://t.example.com/1")])
        history = [ConversationTurn("assistant", "The director is Professor Jane Doe.")]
        response = _run(WebSearchAggregator([provider]).search("his research papers", history))
        assert "Jane Doe" in response.enhanced_query
        assert "Jane Doe" in provider.queries[0]


# ---------------------------------------------------------------------------
# Test: Stage time budget
# ---------------------------------------------------------------------------


class MainSiteOnly(FakeProvider):
    """Answers the main-site query at once and hangs on every other query."""

    async def search(self, query):
        self.queries.append(query)
        if not query.endswith(f"site:{DEFAULT_INSTITUTION.site_search_domains[0]}"):
            await asyncio.sleep(5.0)
        return _per_site(query)


class TestTimeBudget:
    def test_hanging_site_provider_costs_one_timeout(self):
        hanging = FakeProvider("serper", _per_site, site=True, delay=5.0)
        aggregator = WebSearchAggregator([hanging], timeout=0.2)
        start = time.perf_counter()
        response = _run(aggregator.search("who is professor kumar"))
        elapsed = time.perf_counter() - start
        assert elapsed < 0.4
        assert response.results == []
        assert response.error is not None
        assert response.failed_providers == ["serper"]

    def test_timed_out_provider_is_not_called_again(self):
        hanging = FakeProvider("serper", _per_site, site=True, delay=5.0)
        _run(WebSearchAggregator([hanging], timeout=0.1).search("professor jane doe"))
        assert hanging.queries == ["professor jane doe IIT Kharagpur site:iitkgp.ac.in"]

    def test_other_providers_still_answer_after_a_stall(self):
        hanging = FakeProvider("serper", _per_site, site=True, delay=5.0)
        other = FakeProvider("tavily", [_result("https://t.example.com/1")])
        aggregator = WebSearchAggregator([hanging, other], timeout=0.1)
        start = time.perf_counter()
        response = _run(aggregator.search("professor jane doe"))
        assert time.perf_counter() - start < 0.3
        assert [r.link for r in response.results] == ["https://t.example.com/1"]
        assert response.failed_providers == ["serper"]
        assert response.error is None

    def test_budget_keeps_fan_out_results_already_collected(self):
        fast = FakeProvider("fast", [_result("https://a.example.com/1")])
        slow = FakeProvider("slow", [_result("https://b.example.com/1")], delay=5.0)
        aggregator = WebSearchAggregator([fast, slow], timeout=5.0, budget=0.1)
        start = time.perf_counter()
        response = _run(aggregator.search("spring fest dates"))
        assert time.perf_counter() - start < 0.4
        assert [r.link for r in response.results] == ["https://a.example.com/1"]
        assert "budget" in response.error

    def test_budget_keeps_main_site_results_when_subdomains_hang(self):
        site = MainSiteOnly("serper", site=True)
        aggregator = WebSearchAggregator([site], timeout=5.0, budget=0.2)
        response = _run(aggregator.search("professor jane doe"))
        assert [r.link for r in response.results] == ["https://iitkgp.ac.in/people"]
        assert "budget" in response.error


# ---------------------------------------------------------------------------
# Test: Registry and probe
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_credential_status(self):
        assert WebSearchAggregator([]).credential_status() == "missing"
        assert WebSearchAggregator([FakeProvider("duckduckgo")]).credential_status() == "limited"
        assert WebSearchAggregator(
            [FakeProvider("duckduckgo"), FakeProvider("serper")]
        ).credential_status() == "present"

    def test_enabled_providers_lists_names(self):
        providers = [FakeProvider("a"), FakeProvider("b", enabled=False)]
        assert WebSearchAggregator(providers).enabled_providers() == ["a"]

    def test_probe_true_when_any_provider_answers(self):
        providers = [
            FakeProvider("a", error=SearchProviderFailure("a", "down")),
            FakeProvider("b", []),
        ]
        assert _run(WebSearchAggregator(providers).probe()) is True

    def test_probe_false_when_all_fail(self):
        providers = [FakeProvider("a", error=SearchProviderFailure("a", "down"))]
        assert _run(WebSearchAggregator(providers).probe()) is False

    def test_probe_false_without_providers(self):
        assert _run(WebSearchAggregator([FakeProvider("a", enabled=False)]).probe()) is False
