# tests/test_schemas.py
import pytest
from pydantic import ValidationError

from app.domain.types import MLS_NOT_FOUND, CanonicalListing
from app.schemas import CanonicalListingOut, ListingsBatch
from app.service_layer.errors import SchemaViolation
from app.service_layer.orchestrator import validate_batch


def test_listing_rejects_string_numbers_and_negatives():
    with pytest.raises(ValidationError):
        CanonicalListingOut(mls="1", price="450000")
    with pytest.raises(ValidationError):
        CanonicalListingOut(mls="1", beds=-1)
    with pytest.raises(ValidationError):
        CanonicalListingOut(mls="   ")
    with pytest.raises(ValidationError):
        CanonicalListingOut(mls="1", sqft=1200)


def test_batch_caps_and_unique_keys():
    with pytest.raises(ValidationError):
        ListingsBatch(listings=[{"mls": str(i)} for i in range(13)])
    with pytest.raises(ValidationError):
        ListingsBatch(listings=[{"mls": "1"}, {"mls": "1"}])
    with pytest.raises(ValidationError):
        ListingsBatch(listings=[{"mls": MLS_NOT_FOUND, "url": "u"}, {"mls": MLS_NOT_FOUND, "url": "u"}])

    ok = ListingsBatch(listings=[{"mls": MLS_NOT_FOUND}, {"mls": MLS_NOT_FOUND}])
    assert len(ok.listings) == 2


def test_validate_batch_raises_schema_violation():
    with pytest.raises(SchemaViolation):
        validate_batch([CanonicalListing(mls="1"), CanonicalListing(mls="1")])

    assert validate_batch([]).listings == []
