# app/domain/types.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping

from .parsing import get_first

MLS_NOT_FOUND = "MLS not found / MLS non trouvé"

# Both wordings mean "no identifier" when they come back in as input.
MLS_SENTINELS: frozenset[str] = frozenset({MLS_NOT_FOUND, "MLS non trouvé / MLS not found"})

# Accepted keys, consulted in this order.
MLS_ALIASES: tuple[str, ...] = ("mls", "MLS", "MLS®", "Mls", "listingId", "listing_id", "centris")
PRICE_TEXT_ALIASES: tuple[str, ...] = ("priceText", "price_text", "price_str", "askingPrice", "asking_price")
BEDS_ALIASES: tuple[str, ...] = ("beds", "bedrooms")
BATHS_ALIASES: tuple[str, ...] = ("baths", "bathrooms")
TYPE_ALIASES: tuple[str, ...] = ("type", "propertyType", "property_type")


class RunState(str, Enum):
    idle = "idle"
    searching = "searching"
    fetching = "fetching"
    extracting = "extracting"
    normalizing = "normalizing"
    done = "done"
    empty_result = "empty_result"


def is_sentinel_mls(value: Any) -> bool:
    if value is None:
        return True
    s = str(value).strip()
    return not s or s in MLS_SENTINELS


def _first_identifier(payload: Mapping[str, Any]) -> str | None:
    for k in MLS_ALIASES:
        v = payload.get(k)
        if not is_sentinel_mls(v):
            return str(v).strip()
    return None


@dataclass(frozen=True)
class RawListingFragment:
    """
    A partial listing before normalization. Values are kept as they arrived
    (a price may still be "$450,000"); nothing here is validated.
    """

    mls: Any = None
    url: str | None = None
    address: Any = None
    price: Any = None
    price_text: Any = None
    beds: Any = None
    baths: Any = None
    type: Any = None
    note_fr: Any = None
    note_en: Any = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RawListingFragment":
        url = payload.get("url")
        return cls(
            mls=_first_identifier(payload),
            url=str(url) if url not in (None, "") else None,
            address=payload.get("address"),
            price=payload.get("price"),
            price_text=get_first(payload, *PRICE_TEXT_ALIASES),
            beds=get_first(payload, *BEDS_ALIASES),
            baths=get_first(payload, *BATHS_ALIASES),
            type=get_first(payload, *TYPE_ALIASES),
            note_fr=payload.get("note_fr"),
            note_en=payload.get("note_en"),
        )

    def has_observed_data(self) -> bool:
        if not is_sentinel_mls(self.mls):
            return True
        return any(
            v not in (None, "")
            for v in (self.address, self.price, self.price_text, self.beds, self.baths)
        )


@dataclass(frozen=True)
class CanonicalListing:
    mls: str
    url: str | None = None
    address: str | None = None
    price: int | None = None
    beds: int | None = None
    baths: int | None = None
    type: str | None = None
    note_fr: str | None = None
    note_en: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
