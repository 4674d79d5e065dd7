# app/adapters/clients/page_fetcher.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from ...config import settings
from .http_resilience import ResilientHttp

log = logging.getLogger(__name__)

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


@dataclass(frozen=True)
class FetchedPage:
    url: str
    html: str

    @property
    def ok(self) -> bool:
        return bool(self.html)


@dataclass
class PageFetchClient:
    """
    GET a page the way a desktop browser would.

    Every failure (network, timeout, non-2xx, undecodable body) comes back as
    an empty page; nothing is raised past this boundary.
    """

    http: ResilientHttp
    user_agent: str = settings.FETCH_USER_AGENT
    max_bytes: int = settings.FETCH_MAX_BYTES

    @classmethod
    def from_settings(cls, http: ResilientHttp) -> "PageFetchClient":
        return cls(http=http, user_agent=settings.FETCH_USER_AGENT, max_bytes=settings.FETCH_MAX_BYTES)

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": ACCEPT_HTML}

    async def fetch(self, url: str) -> FetchedPage:
        try:
            resp, body = await self.http.request("GET", url, headers=self._headers(), max_bytes=self.max_bytes)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            log.warning("fetch failed url=%s: %s", url, e)
            return FetchedPage(url=url, html="")

        return FetchedPage(url=url, html=_decode(body, resp.charset_encoding))


def _decode(body: bytes, charset: str | None) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
