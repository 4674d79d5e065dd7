# app/domain/parsing.py
from __future__ import annotations

import math
import re
from typing import Any, Mapping

_NON_DIGITS = re.compile(r"[^\d]")
_FIRST_NUMBER = re.compile(r"(\d+)(?:[.,]\d+)?")


def number_from_price_like(value: Any) -> int | None:
    """
    Digits-only price parsing: every non-digit is dropped, the rest is read base-10.

      "$450,000"      -> 450000
      "450 000,00 $"  -> 45000000   (cents are not understood, on purpose)
      None / "" / "n/a" -> None
    """
    if value is None or isinstance(value, bool):
        return None
    raw = _NON_DIGITS.sub("", str(value))
    if not raw:
        return None
    try:
        # a digit run longer than a float can hold is not a price
        if not math.isfinite(float(raw)):
            return None
    except OverflowError:
        return None
    return int(raw)


def to_count(value: Any) -> int | None:
    """
    Integer coercion for bedroom/bathroom counts.

    Fractions are truncated everywhere ("2.5", "2,5 salles de bain", 2.5 -> 2)
    so a half-bath never turns into 25.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return None
        return int(value)
    m = _FIRST_NUMBER.search(str(value))
    if not m:
        return None
    return int(m.group(1))


def get_first(payload: Mapping[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload, in the order given."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None
