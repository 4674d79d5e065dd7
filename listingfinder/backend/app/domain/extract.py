# app/domain/extract.py
"""
Regex extraction over the raw page HTML as fetched, scripts included, so
JSON-LD counts are visible. The same breadth cuts the other way: MLS_RE is
case-insensitive and can capture a token from script source, e.g. "Number"
out of a `mlsNumber` key, when no labelled identifier precedes it.
"""
from __future__ import annotations

import re

from .parsing import number_from_price_like, to_count
from .types import MLS_NOT_FOUND, RawListingFragment

MLS_RE = re.compile(r"MLS[®™]?\s*#?\s*[:\-]?\s*([A-Z0-9\-]+)", re.IGNORECASE)
CENTRIS_RE = re.compile(r"Centris\s*#\s*([0-9\-]+)", re.IGNORECASE)
PRICE_RE = re.compile(r"\$\s*[0-9][0-9,.\s]*")
BEDS_JSON_RE = re.compile(r'"bedrooms"\s*:\s*(\d+)', re.IGNORECASE)
BEDS_TEXT_RE = re.compile(r"(\d+)\s*beds?", re.IGNORECASE)
BATHS_JSON_RE = re.compile(r'"bathrooms"\s*:\s*(\d+(?:\.\d+)?)', re.IGNORECASE)
BATHS_TEXT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*baths?", re.IGNORECASE)


def extract_mls(html: str) -> str | None:
    m = MLS_RE.search(html) or CENTRIS_RE.search(html)
    return m.group(1) if m else None


def page_identifiers(html: str | None) -> set[str]:
    """Every labelled MLS/Centris capture on the page, not just the first."""
    html = html or ""
    return {m.group(1) for p in (MLS_RE, CENTRIS_RE) for m in p.finditer(html)}


def page_prices(html: str | None) -> set[int]:
    out = set()
    for m in PRICE_RE.finditer(html or ""):
        n = number_from_price_like(m.group(0))
        if n is not None:
            out.add(n)
    return out


def _first_group(html: str, *patterns: re.Pattern[str]) -> str | None:
    for p in patterns:
        m = p.search(html)
        if m:
            return m.group(1)
    return None


def extract_listing_info(url: str | None, html: str | None) -> RawListingFragment:
    """
    Pattern-match a single listing page. Address, type and notes are not attempted.
    An empty page yields the sentinel MLS and nothing else.
    """
    html = html or ""

    price_match = PRICE_RE.search(html)
    beds = _first_group(html, BEDS_JSON_RE, BEDS_TEXT_RE)
    baths = _first_group(html, BATHS_JSON_RE, BATHS_TEXT_RE)

    return RawListingFragment(
        mls=extract_mls(html) or MLS_NOT_FOUND,
        url=url or None,
        price=number_from_price_like(price_match.group(0)) if price_match else None,
        beds=to_count(beds),
        baths=to_count(baths),
    )
