# app/service_layer/tools.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..adapters.clients.page_fetcher import FetchedPage
from ..config import settings
from ..domain.allowlist import is_allowed_listing_url
from ..domain.extract import extract_listing_info
from ..domain.grounding import ground_enrichment
from ..domain.normalize import normalize_and_dedupe_listings
from ..domain.sanitize import sanitize_html
from ..domain.types import CanonicalListing, RawListingFragment, RunState

log = logging.getLogger(__name__)

SEARCH = "searchRealEstateListings"
FETCH = "fetchHtmlPage"
EXTRACT = "extractListingInfo"
NORMALIZE = "normalizeAndDedupeListings"

_LISTING_ITEM_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "mls": {"type": ["string", "null"]},
        "url": {"type": ["string", "null"]},
        "address": {"type": ["string", "null"]},
        "price": {"type": ["number", "null"]},
        "beds": {"type": ["integer", "null"]},
        "baths": {"type": ["number", "null"]},
        "type": {"type": ["string", "null"]},
        "note_fr": {"type": ["string", "null"]},
        "note_en": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}

TOOL_SPECS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": SEARCH,
            "description": "Search listing URLs; results are limited to major Québec real-estate sites.",
            "parameters": {
                "type": "object",
                "properties": {
                    "q": {"type": "string"},
                    "num": {"type": "integer", "minimum": 1, "maximum": 20},
                },
                "required": ["q"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": FETCH,
            "description": "Fetch a listing page; returns its cleaned, truncated text.",
            "parameters": {
                "type": "object",
                "properties": {"url": {"type": "string"}},
                "required": ["url"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": EXTRACT,
            "description": "Extract MLS, price, beds and baths from a page fetched earlier in this run.",
            "parameters": {
                "type": "object",
                "properties": {"url": {"type": "string"}},
                "required": ["url"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": NORMALIZE,
            "description": "Normalize listings, dedupe by MLS, cap to 12. Ends the run.",
            "parameters": {
                "type": "object",
                "properties": {"listings": {"type": "array", "items": _LISTING_ITEM_SCHEMA}},
                "required": ["listings"],
                "additionalProperties": False,
            },
        },
    },
]


class SearchProvider(Protocol):
    async def search(self, q: str, num: int = 10) -> list[str]:
        ...


class PageFetchProvider(Protocol):
    async def fetch(self, url: str) -> FetchedPage:
        ...


@dataclass(frozen=True)
class RunLimits:
    max_turns: int = settings.MAX_TURNS
    max_search_calls: int = settings.MAX_SEARCH_CALLS
    max_search_results: int = settings.MAX_SEARCH_RESULTS
    max_fetch_calls: int = settings.MAX_FETCH_CALLS
    max_normalize_calls: int = settings.MAX_NORMALIZE_CALLS
    listing_cap: int = settings.LISTING_CAP
    html_max_chars: int = settings.HTML_MAX_CHARS
    tool_timeout_s: float = settings.TOOL_TIMEOUT_S
    planner_timeout_s: float = settings.OPENAI_TIMEOUT_S

    @classmethod
    def from_settings(cls) -> "RunLimits":
        return cls()


@dataclass
class RunBudget:
    limits: RunLimits
    used: dict[str, int] = field(default_factory=lambda: {SEARCH: 0, FETCH: 0, EXTRACT: 0, NORMALIZE: 0})
    refused: int = 0

    def _cap(self, tool: str) -> int | None:
        return {
            SEARCH: self.limits.max_search_calls,
            FETCH: self.limits.max_fetch_calls,
            NORMALIZE: self.limits.max_normalize_calls,
        }.get(tool)

    def remaining(self, tool: str) -> int | None:
        cap = self._cap(tool)
        if cap is None:
            return None
        return max(0, cap - self.used[tool])

    def take(self, tool: str) -> bool:
        """Count one invocation. False (and nothing counted) once the cap is reached."""
        left = self.remaining(tool)
        if left is not None and left <= 0:
            self.refused += 1
            return False
        self.used[tool] += 1
        return True

    def snapshot(self) -> dict[str, int]:
        return {**self.used, "refused": self.refused}


def _error(code: str, **extra: Any) -> dict[str, Any]:
    return {"error": code, **extra}


@dataclass
class ToolBox:
    """
    Everything one run may touch: the budget, fetched pages and extracted
    fragments. Calls are executed one at a time; nothing here is shared
    with another run.
    """

    limits: RunLimits
    search_provider: SearchProvider
    fetcher: PageFetchProvider

    budget: RunBudget = field(init=False)
    state: RunState = field(default=RunState.idle, init=False)
    pages: dict[str, str] = field(default_factory=dict, init=False)
    fragments: dict[str, RawListingFragment] = field(default_factory=dict, init=False)
    normalized: list[CanonicalListing] | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.budget = RunBudget(self.limits)

    @property
    def finished(self) -> bool:
        return self.normalized is not None

    async def call(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if self.finished:
            return _error("run_finished")
        if name == SEARCH:
            return await self._search(arguments)
        if name == FETCH:
            return await self._fetch(arguments)
        if name == EXTRACT:
            return self._extract(arguments)
        if name == NORMALIZE:
            return self._normalize(arguments)
        return _error("unknown_tool", tool=name)

    async def _bounded(self, coro: Any, fallback: Any, what: str) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=float(self.limits.tool_timeout_s))
        except asyncio.TimeoutError:
            log.warning("%s timed out after %.1fs", what, self.limits.tool_timeout_s)
            return fallback

    async def _search(self, args: dict[str, Any]) -> dict[str, Any]:
        q = args.get("q")
        if not isinstance(q, str) or not q.strip():
            return _error("invalid_arguments", detail="q is required")
        if not self.budget.take(SEARCH):
            return _error("budget_exhausted", tool=SEARCH)

        try:
            num = int(args.get("num") or self.limits.max_search_results)
        except (TypeError, ValueError):
            num = self.limits.max_search_results
        num = max(1, min(num, self.limits.max_search_results))

        self.state = RunState.searching
        results = await self._bounded(self.search_provider.search(q.strip(), num), [], "search")
        results = list(results)[:num]
        log.info("search q=%r -> %d urls", q, len(results))
        return {"q": q, "num": num, "results": results}

    async def _fetch(self, args: dict[str, Any]) -> dict[str, Any]:
        url = args.get("url")
        if not isinstance(url, str) or not url.strip():
            return _error("invalid_arguments", detail="url is required")
        url = url.strip()
        if url in self.pages:
            return {"url": url, "html": sanitize_html(self.pages[url], self.limits.html_max_chars)}
        if not is_allowed_listing_url(url):
            return {"url": url, "html": "", "error": "url_not_allowed"}
        if not self.budget.take(FETCH):
            return _error("budget_exhausted", tool=FETCH)

        self.state = RunState.fetching
        page = await self._bounded(self.fetcher.fetch(url), FetchedPage(url=url, html=""), f"fetch {url}")
        self.pages[url] = page.html or ""
        log.info("fetched url=%s chars=%d", url, len(self.pages[url]))
        return {"url": url, "html": sanitize_html(self.pages[url], self.limits.html_max_chars)}

    def _extract(self, args: dict[str, Any]) -> dict[str, Any]:
        url = args.get("url")
        if not isinstance(url, str) or url.strip() not in self.pages:
            return _error("page_not_fetched", url=url)
        url = url.strip()
        self.budget.take(EXTRACT)
        self.state = RunState.extracting
        fragment = extract_listing_info(url, self.pages[url])
        self.fragments[url] = fragment
        return {
            "mls": fragment.mls,
            "url": fragment.url,
            "address": None,
            "price": fragment.price,
            "beds": fragment.beds,
            "baths": fragment.baths,
            "type": None,
        }

    def _normalize(self, args: dict[str, Any]) -> dict[str, Any]:
        listings = args.get("listings")
        if listings is not None and not isinstance(listings, list):
            return _error("invalid_arguments", detail="listings must be an array")
        if not self.budget.take(NORMALIZE):
            return _error("budget_exhausted", tool=NORMALIZE)
        out = self.run_normalization(listings or [])
        return {"listings": [it.as_dict() for it in out]}

    def eligible_fragments(self, enrichments: list[Any]) -> list[RawListingFragment]:
        """
        One fragment per fetched, non-empty page, in fetch order, with grounded
        planner values merged in. Pages with nothing observed are left out.
        """
        by_url: dict[str, dict[str, Any]] = {}
        for e in enrichments:
            if isinstance(e, dict) and isinstance(e.get("url"), str):
                by_url.setdefault(e["url"].strip(), e)

        out: list[RawListingFragment] = []
        for url, html in self.pages.items():
            if not html:
                continue
            fragment = self.fragments.get(url) or extract_listing_info(url, html)
            fragment = ground_enrichment(fragment, by_url.get(url), html)
            if fragment.has_observed_data():
                out.append(fragment)
        return out

    def run_normalization(self, enrichments: list[Any]) -> list[CanonicalListing]:
        self.state = RunState.normalizing
        self.normalized = normalize_and_dedupe_listings(
            self.eligible_fragments(enrichments),
            cap=self.limits.listing_cap,
        )
        log.info("normalized %d listings from %d pages", len(self.normalized), len(self.pages))
        return self.normalized
