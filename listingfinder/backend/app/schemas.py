from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from .domain.normalize import LISTING_CAP
from .domain.types import MLS_NOT_FOUND


class CanonicalListingOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mls: str = Field(..., min_length=1)
    url: str | None = None
    address: str | None = None
    price: StrictInt | None = Field(default=None, ge=0)
    beds: StrictInt | None = Field(default=None, ge=0)
    baths: StrictInt | None = Field(default=None, ge=0)
    type: str | None = None
    note_fr: str | None = None
    note_en: str | None = None

    @model_validator(mode="after")
    def _mls_not_blank(self) -> "CanonicalListingOut":
        if not self.mls.strip():
            raise ValueError("mls must be an identifier or the not-found sentinel")
        return self


class ListingsBatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    listings: list[CanonicalListingOut] = Field(default_factory=list, max_length=LISTING_CAP)

    @model_validator(mode="after")
    def _unique_keys(self) -> "ListingsBatch":
        seen: set[str] = set()
        for it in self.listings:
            if it.mls != MLS_NOT_FOUND:
                key = f"MLS:{it.mls}"
            elif it.url:
                key = f"URL:{it.url}"
            else:
                continue
            if key in seen:
                raise ValueError(f"duplicate listing key {key}")
            seen.add(key)
        return self


class RunWorkflowIn(BaseModel):
    input_as_text: str = Field(..., min_length=1)


class RunWorkflowOut(BaseModel):
    output_text: str
    output_parsed: ListingsBatch


class BlockedOut(BaseModel):
    blocked: Literal[True] = True
    failures: list[dict[str, Any]] = Field(default_factory=list)


class ErrorOut(BaseModel):
    error: str


class WorkflowRunOut(BaseModel):
    id: int
    status: str
    query: str
    final_state: str | None = None
    listings_count: int = Field(0, ge=0)
    tool_calls: dict[str, int] = Field(default_factory=dict)
    error: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
