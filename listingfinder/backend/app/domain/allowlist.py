# app/domain/allowlist.py
from __future__ import annotations

from urllib.parse import urlsplit

ALLOWED_LISTING_DOMAINS: tuple[str, ...] = (
    "centris.ca",
    "realtor.ca",
    "royallepage.ca",
    "remax-quebec.com",
    "duproprio.com",
)


def is_allowed_host(host: str | None, allowed: tuple[str, ...] = ALLOWED_LISTING_DOMAINS) -> bool:
    """
    Exact host or a proper subdomain ("www.centris.ca"), never a bare suffix
    ("evilcentris.ca" does not match "centris.ca").
    """
    if not host:
        return False
    h = host.strip().lower().rstrip(".")
    return any(h == d or h.endswith("." + d) for d in allowed)


def is_allowed_listing_url(url: str | None, allowed: tuple[str, ...] = ALLOWED_LISTING_DOMAINS) -> bool:
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme not in ("http", "https"):
        return False
    return is_allowed_host(parts.hostname, allowed)
