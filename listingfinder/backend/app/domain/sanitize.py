# app/domain/sanitize.py
from __future__ import annotations

import re

_SCRIPT = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE = re.compile(r"<style\b[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_WS = re.compile(r"\s+")

DEFAULT_MAX_CHARS = 2000


def sanitize_html(html: str | None, max_chars: int | None = DEFAULT_MAX_CHARS) -> str:
    """
    Best-effort cleanup, not a parser: drops <script>, <style> and comments,
    collapses whitespace, then truncates. Output only feeds pattern matching
    and the planner prompt; it is never rendered.

    max_chars=None keeps the whole text.
    """
    if not html:
        return ""
    s = _SCRIPT.sub("", html)
    s = _STYLE.sub("", s)
    s = _COMMENT.sub("", s)
    s = _WS.sub(" ", s).strip()
    if max_chars is not None:
        s = s[: max(0, int(max_chars))]
    return s
