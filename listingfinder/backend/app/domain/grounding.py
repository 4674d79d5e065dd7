# app/domain/grounding.py
from __future__ import annotations

import html as html_lib
import re
from dataclasses import replace
from typing import Any, Mapping

from .extract import page_identifiers, page_prices
from .normalize import normalize_price, resolve_identifier
from .sanitize import sanitize_html
from .types import MLS_NOT_FOUND, RawListingFragment

_WS = re.compile(r"\s+")
_TAG = re.compile(r"<[^>]+>")


def _squash(s: str) -> str:
    return _WS.sub(" ", s).strip().lower()


def page_text(html: str) -> str:
    return _squash(html_lib.unescape(_TAG.sub(" ", sanitize_html(html, max_chars=None))))


def address_in_page(address: str, text: str) -> bool:
    needle = _squash(address)
    return bool(needle) and needle in text


def ground_enrichment(
    fragment: RawListingFragment,
    enrichment: Mapping[str, Any] | None,
    html: str,
) -> RawListingFragment:
    """
    Overlay planner-supplied values onto an extracted fragment, keeping only
    what the fetched page actually shows:

      mls      only fills a missing identifier, and must be a labelled MLS/Centris capture on the page
      price    only fills a missing price, and must be one of the page's "$" amounts
      address  kept if it appears in the page text
      type / note_fr / note_en  descriptive, kept as given

    Extracted mls and price are never replaced. Bedrooms and bathrooms always
    come from extraction.
    """
    if not enrichment:
        return fragment

    proposed = RawListingFragment.from_mapping(enrichment)
    changes: dict[str, Any] = {}

    if resolve_identifier(fragment) == MLS_NOT_FOUND:
        mls = resolve_identifier(proposed)
        if mls != MLS_NOT_FOUND and mls in page_identifiers(html):
            changes["mls"] = mls

    if normalize_price(fragment) is None:
        price = normalize_price(proposed)
        if price is not None and price in page_prices(html):
            changes["price"] = price
            changes["price_text"] = None

    if isinstance(proposed.address, str) and address_in_page(proposed.address, page_text(html)):
        changes["address"] = proposed.address.strip()

    for name in ("type", "note_fr", "note_en"):
        v = getattr(proposed, name)
        if isinstance(v, str) and v.strip():
            changes[name] = v.strip()

    return replace(fragment, **changes) if changes else fragment
