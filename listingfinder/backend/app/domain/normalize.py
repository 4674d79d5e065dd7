# app/domain/normalize.py
from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from .parsing import number_from_price_like, to_count
from .types import MLS_NOT_FOUND, CanonicalListing, RawListingFragment, is_sentinel_mls

LISTING_CAP = 12


def _as_fragment(item: RawListingFragment | CanonicalListing | Mapping[str, Any]) -> RawListingFragment:
    if isinstance(item, RawListingFragment):
        return item
    if isinstance(item, CanonicalListing):
        return RawListingFragment.from_mapping(item.as_dict())
    return RawListingFragment.from_mapping(item)


def resolve_identifier(fragment: RawListingFragment) -> str:
    if is_sentinel_mls(fragment.mls):
        return MLS_NOT_FOUND
    return str(fragment.mls).strip()


def dedupe_key(mls: str, url: str | None) -> str:
    """
    "MLS:<id>" for a real identifier, "URL:<url>" when only the page is known,
    "" when neither exists (such entries are never deduplicated).
    """
    if mls != MLS_NOT_FOUND:
        return f"MLS:{mls}"
    if url:
        return f"URL:{url}"
    return ""


def normalize_price(fragment: RawListingFragment) -> int | None:
    p = fragment.price
    if isinstance(p, bool):
        p = None
    elif isinstance(p, int):
        return number_from_price_like(p) if p >= 0 else None
    elif isinstance(p, float):
        return int(p) if math.isfinite(p) and p >= 0 else None
    # a string price is treated like any other price-like text
    for candidate in (p, fragment.price_text):
        n = number_from_price_like(candidate)
        if n is not None:
            return n
    return None


def _text_or_none(v: Any) -> str | None:
    if v is None:
        return None
    return v if isinstance(v, str) else str(v)


def normalize_fragment(fragment: RawListingFragment, mls: str) -> CanonicalListing:
    return CanonicalListing(
        mls=mls,
        url=fragment.url or None,
        address=_text_or_none(fragment.address),
        price=normalize_price(fragment),
        beds=to_count(fragment.beds),
        baths=to_count(fragment.baths),
        type=_text_or_none(fragment.type),
        note_fr=_text_or_none(fragment.note_fr),
        note_en=_text_or_none(fragment.note_en),
    )


def normalize_and_dedupe_listings(
    fragments: Iterable[RawListingFragment | CanonicalListing | Mapping[str, Any]] | None,
    cap: int = LISTING_CAP,
) -> list[CanonicalListing]:
    """
    Single normalization pass over fragments, in input order.

    - first fragment for a key wins; later duplicates are dropped, never merged
    - fields are normalized, never invented (missing stays None)
    - stops as soon as `cap` listings are collected

    Running it again on its own output returns the same list.
    """
    cap = min(int(cap), LISTING_CAP)
    seen: set[str] = set()
    out: list[CanonicalListing] = []
    if cap <= 0:
        return out

    for item in fragments or []:
        fragment = _as_fragment(item)
        mls = resolve_identifier(fragment)
        key = dedupe_key(mls, fragment.url)
        if key and key in seen:
            continue
        if key:
            seen.add(key)

        out.append(normalize_fragment(fragment, mls))
        if len(out) >= cap:
            break

    return out
