# =============================================================================
# Web Search Providers — httpx Adapters over Third-Party Search APIs
# =============================================================================
#
# Each adapter sends one query to one search API and normalises that API's
# response shape into the common WebSearchResult. The aggregator in
# app.agents.web_search only ever sees WebSearchResult lists.
#
# PROVIDERS:
#   serper           — Google results via serper.dev (site: queries work)
#   bing             — Bing Web Search v7 (site: queries work)
#   duckduckgo       — Instant Answer API, no key required
#   academic         — Semantic Scholar paper search
#   tavily           — Tavily search, including its direct-answer entry
#   brightdata       — BrightData web search, plus person-profile search
#                      that fills WebSearchResult.profile_data
#
# DESIGN DECISION: Registry built from an explicit credentials struct.
# build_search_providers(SearchCredentials) returns every adapter; each
# one's `enabled` flag is a pure function of its credentials. Nothing reads
# os.environ, so tests construct providers with whatever keys they need.
#
# DESIGN DECISION: One httpx.AsyncClient per call.
# Every call opens `httpx.AsyncClient(timeout=..., transport=...)`. The
# timeout is the per-provider budget. The optional transport lets tests
# inject httpx.MockTransport without patching.
#
# FAILURE CONTRACT: Every adapter raises SearchProviderFailure (and nothing
# else) for HTTP errors, timeouts and malformed payloads.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlsplit

import httpx

from app.agents.errors import SearchProviderFailure
from app.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ProfileData:
    """
    Structured person attributes from a profile search.

    `extra` carries the remaining provider fields untouched; nothing in the
    pipeline branches on it.
    """

    name: str
    url: str
    headline: str = ""
    company: str = ""
    city: str = ""
    about: str | None = None
    education: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class WebSearchResult:
    """One external search hit, normalised across providers."""

    title: str
    link: str
    snippet: str
    source: str
    relevance: float
    search_engine: str
    profile_data: ProfileData | None = None


@dataclass(frozen=True)
class SearchCredentials:
    """Credentials for every provider. Empty string means "not configured"."""

    serper_api_key: str = ""
    bing_api_key: str = ""
    semantic_scholar_api_key: str = ""
    tavily_api_key: str = ""
    brightdata_api_key: str = ""
    brightdata_username: str = ""
    brightdata_password: str = ""
    duckduckgo_enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchCredentials:
        return cls(
            serper_api_key=settings.serper_api_key,
            bing_api_key=settings.bing_api_key,
            semantic_scholar_api_key=settings.semantic_scholar_api_key,
            tavily_api_key=settings.tavily_api_key,
            brightdata_api_key=settings.brightdata_api_key,
            brightdata_username=settings.brightdata_username,
            brightdata_password=settings.brightdata_password,
            duckduckgo_enabled=settings.duckduckgo_enabled,
        )


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class SearchProvider(Protocol):
    """
    Protocol for a single search backend.

    `supports_site_search` marks providers that honour `site:` operators,
    which the aggregator needs for its site-restricted tiers.
    """

    name: str
    enabled: bool
    supports_site_search: bool

    async def search(self, query: str) -> list[WebSearchResult]:
        """Run one query. Raises SearchProviderFailure on any failure."""
        ...


# ---------------------------------------------------------------------------
# Shared Helpers
# ---------------------------------------------------------------------------


def extract_domain(url: str | None) -> str:
    """Hostname without a leading "www.", or "unknown"."""
    if not url:
        return "unknown"
    hostname = urlsplit(url).hostname
    if not hostname:
        return "unknown"
    return hostname.removeprefix("www.")


def initial_relevance(
    title: str,
    snippet: str,
    position: int,
    academic: bool = False,
) -> float:
    """
    Position-based starting score, before the aggregator's boosts.

    1.0 for the first hit, minus 0.1 per position; +0.1 for a descriptive
    snippet (>100 chars), +0.1 for a descriptive title (>20 chars), +0.2
    for academic sources. Clamped to [0.1, 1.0].
    """
    score = 1.0 - position * 0.1
    if len(snippet) > 100:
        score += 0.1
    if len(title) > 20:
        score += 0.1
    if academic:
        score += 0.2
    return max(0.1, min(1.0, score))


class _HTTPSearchProvider:
    """
    Base adapter: owns the timeout/transport and the failure wrapping.

    Subclasses implement `_fetch(client, query)` and set `name`,
    `search_engine` and `supports_site_search`.
    """

    name = ""
    search_engine = ""
    supports_site_search = False
    max_results = 5

    def __init__(
        self,
        timeout: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        raise NotImplementedError

    async def search(self, query: str) -> list[WebSearchResult]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                results = await self._fetch(client, query)
        except httpx.TimeoutException as exc:
            raise SearchProviderFailure(self.name, "request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise SearchProviderFailure(
                self.name, f"HTTP {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise SearchProviderFailure(self.name, str(exc)) from exc
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            # json decode errors are ValueErrors; the rest are shape drift
            raise SearchProviderFailure(
                self.name, f"malformed response: {exc}",
            ) from exc

        logger.debug("%s returned %d results", self.name, len(results))
        return results

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Serper (Google)
# ---------------------------------------------------------------------------


class SerperProvider(_HTTPSearchProvider):
    name = "serper"
    search_engine = "Google (via Serper)"
    supports_site_search = True
    url = "https://google.serper.dev/search"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.post(
            self.url,
            json={"q": query},
            headers={"X-API-KEY": self._api_key},
        )
        response.raise_for_status()
        organic = response.json().get("organic") or []

        results = []
        for index, item in enumerate(organic[: self.max_results]):
            title = item.get("title") or "No title"
            snippet = item.get("snippet") or "No description available"
            link = item.get("link") or "#"
            results.append(WebSearchResult(
                title=title,
                link=link,
                snippet=snippet,
                source=extract_domain(link),
                relevance=initial_relevance(title, snippet, index),
                search_engine=self.search_engine,
            ))
        return results


# ---------------------------------------------------------------------------
# Bing
# ---------------------------------------------------------------------------


class BingProvider(_HTTPSearchProvider):
    name = "bing"
    search_engine = "Bing"
    supports_site_search = True
    url = "https://api.bing.microsoft.com/v7.0/search"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.get(
            self.url,
            params={"q": query, "count": self.max_results},
            headers={"Ocp-Apim-Subscription-Key": self._api_key},
        )
        response.raise_for_status()
        pages = (response.json().get("webPages") or {}).get("value") or []

        results = []
        for index, item in enumerate(pages):
            title = item.get("name") or "No title"
            snippet = item.get("snippet") or "No description available"
            link = item.get("url") or "#"
            results.append(WebSearchResult(
                title=title,
                link=link,
                snippet=snippet,
                source=extract_domain(link),
                relevance=initial_relevance(title, snippet, index),
                search_engine=self.search_engine,
            ))
        return results


# ---------------------------------------------------------------------------
# DuckDuckGo Instant Answer
# ---------------------------------------------------------------------------


class DuckDuckGoProvider(_HTTPSearchProvider):
    """
    DuckDuckGo's Instant Answer API. Free and keyless, but it only returns
    an abstract plus related topics, not a ranked result list.
    """

    name = "duckduckgo"
    search_engine = "DuckDuckGo"
    url = "https://api.duckduckgo.com/"
    max_related = 3

    def __init__(self, enabled: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.get(
            self.url,
            params={
                "q": query,
                "format": "json",
                "no_html": "1",
                "skip_disambig": "1",
            },
        )
        response.raise_for_status()
        data = response.json()

        results = []
        if data.get("Abstract"):
            link = data.get("AbstractURL") or "#"
            results.append(WebSearchResult(
                title=data.get("Heading") or "Instant Answer",
                link=link,
                snippet=data["Abstract"],
                source=extract_domain(link),
                relevance=0.9,
                search_engine=self.search_engine,
            ))

        related = [t for t in data.get("RelatedTopics") or [] if t.get("Text")]
        for index, topic in enumerate(related[: self.max_related]):
            link = topic.get("FirstURL") or "#"
            text = topic["Text"]
            results.append(WebSearchResult(
                title=text.split(" - ")[0] or "Related Topic",
                link=link,
                snippet=text,
                source=extract_domain(link),
                relevance=round(0.7 - index * 0.1, 2),
                search_engine=self.search_engine,
            ))
        return results


# ---------------------------------------------------------------------------
# Semantic Scholar
# ---------------------------------------------------------------------------


class SemanticScholarProvider(_HTTPSearchProvider):
    name = "academic"
    search_engine = "Semantic Scholar"
    url = "https://api.semanticscholar.org/graph/v1/paper/search"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.get(
            self.url,
            params={
                "query": query,
                "limit": self.max_results,
                "fields": "title,abstract,url,year,authors",
            },
            headers={"x-api-key": self._api_key},
        )
        response.raise_for_status()
        papers = response.json().get("data") or []

        results = []
        for index, paper in enumerate(papers):
            title = paper.get("title") or "No title"
            snippet = paper.get("abstract") or "No abstract available"
            results.append(WebSearchResult(
                title=title,
                link=paper.get("url") or "#",
                snippet=snippet,
                source="Semantic Scholar",
                relevance=initial_relevance(title, snippet, index, academic=True),
                search_engine=self.search_engine,
            ))
        return results


# ---------------------------------------------------------------------------
# Tavily
# ---------------------------------------------------------------------------


class TavilyProvider(_HTTPSearchProvider):
    name = "tavily"
    search_engine = "Tavily"
    url = "https://api.tavily.com/search"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.post(
            self.url,
            json={
                "query": query,
                "search_depth": "basic",
                "include_answer": True,
                "include_raw_content": False,
                "max_results": self.max_results,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        data = response.json()

        results = []
        # Tavily's synthesised answer goes first, at full relevance
        if data.get("answer"):
            results.append(WebSearchResult(
                title="Direct Answer",
                link="#",
                snippet=data["answer"],
                source="Tavily AI",
                relevance=1.0,
                search_engine=self.search_engine,
            ))

        hits = [
            item for item in data.get("results") or []
            if item.get("title") and item.get("url")
        ]
        for index, item in enumerate(hits):
            snippet = item.get("content") or "No content available"
            results.append(WebSearchResult(
                title=item["title"],
                link=item["url"],
                snippet=snippet,
                source=extract_domain(item["url"]),
                relevance=initial_relevance(item["title"], snippet, index),
                search_engine=self.search_engine,
            ))
        return results


# ---------------------------------------------------------------------------
# BrightData (web search + person profiles)
# ---------------------------------------------------------------------------

PROFILE_QUERY_TERMS = (
    "linkedin", "profile", "person", "employee", "staff", "team member",
    "professor", "faculty", "researcher", "engineer", "manager", "director",
    "ceo", "cto", "founder", "co-founder", "head of", "lead", "senior",
    "junior", "associate", "analyst", "consultant", "specialist",
)


def is_profile_query(query: str) -> bool:
    """Role words, or two or more capitalised words (a likely name)."""
    lowered = query.lower()
    if any(term in lowered for term in PROFILE_QUERY_TERMS):
        return True
    capitalised = [w for w in query.split() if len(w) > 1 and w[0].isupper()]
    return len(capitalised) >= 2


def profile_relevance(profile: ProfileData, query: str, position: int) -> float:
    """
    Profile-specific score: position base plus boosts when the query and
    the profile's name, company, headline, education or city overlap.
    """
    score = 1.0 - position * 0.1
    lowered = query.lower()
    name = profile.name.lower()

    if name and (name in lowered or lowered in name):
        score += 0.3
    if profile.company and lowered in profile.company.lower():
        score += 0.2
    if profile.headline and lowered in profile.headline.lower():
        score += 0.2
    if any(lowered in edu.lower() for edu in profile.education):
        score += 0.1
    if profile.city and lowered in profile.city.lower():
        score += 0.1
    return max(0.1, min(1.0, score))


def _profile_snippet(profile: ProfileData) -> str:
    parts = []
    if profile.about:
        parts.append(profile.about[:200] + "...")
    elif profile.headline and profile.company:
        parts.append(f"{profile.headline} at {profile.company}")
    elif profile.headline:
        parts.append(profile.headline)
    if profile.education:
        parts.append(f"Education: {profile.education[0]}")
    if profile.city:
        parts.append(f"Location: {profile.city}")
    return " | ".join(parts) or "Profile information available"


def _parse_profile(raw: dict[str, Any]) -> ProfileData:
    company = raw.get("current_company") or {}
    experience = raw.get("experience") or []
    headline = company.get("title") or raw.get("position") or ""
    company_name = company.get("name") or ""
    if not headline and experience:
        headline = experience[0].get("title") or ""
        company_name = company_name or experience[0].get("company") or ""

    known = {"name", "url", "current_company", "position", "city", "about", "education"}
    return ProfileData(
        name=raw.get("name") or "",
        url=raw.get("url") or "#",
        headline=headline,
        company=company_name,
        city=raw.get("city") or "",
        about=raw.get("about"),
        education=[
            edu.get("title") or "" for edu in raw.get("education") or []
        ],
        extra={k: v for k, v in raw.items() if k not in known},
    )


class BrightDataProvider(_HTTPSearchProvider):
    """
    BrightData search. Person-shaped queries go to the profile endpoint and
    produce results carrying ProfileData; everything else goes to web search.
    """

    name = "brightdata"
    search_engine = "BrightData Web"
    profile_search_engine = "BrightData Profiles"
    base_url = "https://api.brightdata.com"

    def __init__(
        self,
        api_key: str,
        username: str,
        password: str,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._username = username
        self._password = password

    @property
    def enabled(self) -> bool:
        return bool(self._api_key and self._username and self._password)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "X-Username": self._username,
            "X-Password": self._password,
        }

    async def _fetch(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        if is_profile_query(query):
            return await self._search_profiles(client, query)
        return await self._search_web(client, query)

    async def _search_profiles(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.post(
            f"{self.base_url}/linkedin/profile/search",
            json={
                "query": query,
                "max_results": self.max_results,
                "include_experience": True,
                "include_education": True,
            },
            headers=self._headers(),
        )
        response.raise_for_status()

        results = []
        for index, raw in enumerate(response.json().get("results") or []):
            profile = _parse_profile(raw)
            results.append(WebSearchResult(
                title=f"{profile.name} - {profile.headline}".strip(" -"),
                link=profile.url,
                snippet=_profile_snippet(profile),
                source="LinkedIn",
                relevance=profile_relevance(profile, query, index),
                search_engine=self.profile_search_engine,
                profile_data=profile,
            ))
        return results

    async def _search_web(
        self, client: httpx.AsyncClient, query: str,
    ) -> list[WebSearchResult]:
        response = await client.post(
            f"{self.base_url}/web/search",
            json={
                "query": query,
                "max_results": self.max_results,
                "include_content": True,
                "country": "US",
                "language": "en",
            },
            headers=self._headers(),
        )
        response.raise_for_status()

        results = []
        for index, item in enumerate(response.json().get("results") or []):
            title = item.get("title") or "No title"
            snippet = (
                item.get("content") or item.get("description")
                or "No description available"
            )
            link = item.get("url") or "#"
            results.append(WebSearchResult(
                title=title,
                link=link,
                snippet=snippet,
                source=extract_domain(link),
                relevance=initial_relevance(title, snippet, index),
                search_engine=self.search_engine,
            ))
        return results


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def build_search_providers(
    credentials: SearchCredentials,
    timeout: float = 8.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[_HTTPSearchProvider]:
    """
    Build every provider adapter, in dispatch-priority order.

    Disabled providers are included (with enabled=False) so the aggregator
    can report which ones are missing credentials.
    """
    common: dict[str, Any] = {"timeout": timeout, "transport": transport}
    return [
        SerperProvider(credentials.serper_api_key, **common),
        BingProvider(credentials.bing_api_key, **common),
        DuckDuckGoProvider(credentials.duckduckgo_enabled, **common),
        SemanticScholarProvider(credentials.semantic_scholar_api_key, **common),
        TavilyProvider(credentials.tavily_api_key, **common),
        BrightDataProvider(
            credentials.brightdata_api_key,
            credentials.brightdata_username,
            credentials.brightdata_password,
            **common,
        ),
    ]
