# app/adapters/clients/serpapi_search.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ...config import settings
from ...domain.allowlist import ALLOWED_LISTING_DOMAINS, is_allowed_listing_url
from .http_resilience import ResilientHttp

log = logging.getLogger(__name__)


@dataclass
class SerpApiSearchClient:
    """
    Google results through SerpAPI, kept only when the link lives on a known
    Québec listing site. Never raises: no key or a failed call means no URLs.
    """

    http: ResilientHttp
    api_key: str | None = None
    base_url: str = settings.SERPAPI_URL
    allowed_domains: tuple[str, ...] = ALLOWED_LISTING_DOMAINS

    @classmethod
    def from_settings(cls, http: ResilientHttp) -> "SerpApiSearchClient":
        return cls(http=http, api_key=settings.SERPAPI_KEY or None, base_url=settings.SERPAPI_URL)

    def _params(self, q: str, num: int) -> dict[str, Any]:
        return {
            "engine": "google",
            "q": q,
            "num": str(num),
            "hl": "fr",
            "gl": "ca",
            "api_key": self.api_key,
        }

    async def search(self, q: str, num: int = 10) -> list[str]:
        if not self.api_key:
            log.warning("SERPAPI_KEY is not set; search returns no results")
            return []
        num = max(1, int(num))

        try:
            _, body = await self.http.request("GET", self.base_url, params=self._params(q, num))
            data = json.loads(body or b"{}")
        except (httpx.HTTPError, ValueError) as e:
            log.warning("serpapi search failed q=%r: %s", q, e)
            return []

        return filter_result_links(data, num=num, allowed=self.allowed_domains)


def filter_result_links(data: Any, *, num: int, allowed: tuple[str, ...] = ALLOWED_LISTING_DOMAINS) -> list[str]:
    rows = data.get("organic_results") if isinstance(data, dict) else None
    results: list[str] = []
    for r in rows or []:
        link = r.get("link") if isinstance(r, dict) else None
        if not link or not is_allowed_listing_url(link, allowed):
            continue
        if link in results:
            continue
        results.append(link)
        if len(results) >= num:
            break
    return results
