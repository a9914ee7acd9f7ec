from __future__ import annotations

from datetime import UTC, datetime

import pytest

from listingsync.domain.model import LocationFields
from tests.helpers.listings import make_location


def test_absorb_keeps_identity_and_takes_content() -> None:
    stored = make_location("locations/42", name="Old")
    fresher = make_location(
        "accounts/7/locations/42",
        name="New",
        updated_at=datetime(2024, 1, 1, tzinfo=UTC),
    )
    fresher.completeness_score = 30

    stored.absorb(fresher)

    assert stored.id != fresher.id
    assert stored.name == "New"
    assert stored.external_id == "accounts/7/locations/42"
    assert stored.completeness_score == 30
    assert stored.updated_at == fresher.updated_at


def test_absorb_rejects_a_different_listing() -> None:
    stored = make_location("locations/42")
    other = make_location("locations/43")

    with pytest.raises(ValueError, match="cannot merge"):
        stored.absorb(other)


def test_fields_are_immutable_and_replaced_wholesale() -> None:
    fields = LocationFields(name="Bakery")

    changed = fields.with_changes(phone="+1 555")

    assert fields.phone is None
    assert changed == LocationFields(name="Bakery", phone="+1 555")
