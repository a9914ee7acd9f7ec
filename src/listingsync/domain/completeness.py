"""Metadata completeness scoring for location records.

The score ranks duplicate records of one listing: the record that carries more
of the profile (description, hours, services, verification, ...) wins.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from listingsync.domain.model import LocationFields


@dataclass(frozen=True, slots=True)
class CompletenessWeights:
    """Points per signal. Every weight must be positive."""

    description: int = 10
    regular_hours: int = 10
    service_item: int = 5
    service_items_cap: int = 20
    special_hours: int = 5
    more_hours: int = 5
    open_info: int = 5
    latlng: int = 5
    label: int = 2
    labels_cap: int = 10
    voice_of_merchant: int = 10
    place_id: int = 5
    maps_uri: int = 5
    category: int = 3
    phone: int = 3
    website: int = 3
    address: int = 3

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"Completeness weight {item.name!r} must be a positive integer")

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, int] | None = None) -> CompletenessWeights:
        if not overrides:
            return cls()
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown completeness weights: {', '.join(unknown)}")
        return replace(cls(), **overrides)


DEFAULT_WEIGHTS = CompletenessWeights()


def _lookup(payload: Mapping[str, object], key: str) -> object:
    if key in payload:
        return payload[key]
    metadata = payload.get("metadata")
    if isinstance(metadata, Mapping):
        return metadata.get(key)  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
    return None


def _count(value: object) -> int:
    if isinstance(value, Sequence) and not isinstance(value, str | bytes):
        return len(value)
    return 0


def _text(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _nested(value: object, key: str) -> object:
    if isinstance(value, Mapping):
        return value.get(key)  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
    return None


def _has_coordinates(value: object) -> bool:
    latitude = _nested(value, "latitude")
    longitude = _nested(value, "longitude")
    return bool(latitude) and bool(longitude)


def _description(payload: Mapping[str, object]) -> object:
    profile = _lookup(payload, "profile")
    return _nested(profile, "description") or _lookup(payload, "description")


def _field_or_payload(value: str | None, payload: Mapping[str, object], *keys: str) -> bool:
    if _text(value):
        return True
    return any(_lookup(payload, key) for key in keys)


def completeness_score(
    fields: LocationFields,
    payload: Mapping[str, object],
    *,
    weights: CompletenessWeights = DEFAULT_WEIGHTS,
) -> int:
    """Sum the weights of every signal present in ``fields`` or ``payload``."""

    score = 0
    if _text(_description(payload)):
        score += weights.description
    if _count(_nested(_lookup(payload, "regularHours"), "periods")):
        score += weights.regular_hours

    service_items = _count(_lookup(payload, "serviceItems"))
    score += min(service_items * weights.service_item, weights.service_items_cap)

    if _count(_nested(_lookup(payload, "specialHours"), "specialHourPeriods")) or _count(
        _lookup(payload, "specialHours")
    ):
        score += weights.special_hours
    if _count(_lookup(payload, "moreHours")):
        score += weights.more_hours
    if _nested(_lookup(payload, "openInfo"), "status"):
        score += weights.open_info
    if _has_coordinates(_lookup(payload, "latlng")):
        score += weights.latlng

    labels = _count(_lookup(payload, "labels"))
    score += min(labels * weights.label, weights.labels_cap)

    if _lookup(payload, "hasVoiceOfMerchant"):
        score += weights.voice_of_merchant
    if _text(_lookup(payload, "placeId")):
        score += weights.place_id
    if _text(_lookup(payload, "mapsUri")):
        score += weights.maps_uri

    if _field_or_payload(fields.category, payload, "category", "categories"):
        score += weights.category
    if _field_or_payload(fields.phone, payload, "phone", "phoneNumbers"):
        score += weights.phone
    if _field_or_payload(fields.website, payload, "website", "websiteUri"):
        score += weights.website
    if _field_or_payload(fields.address, payload, "address", "storefrontAddress"):
        score += weights.address
    return score


__all__ = ["DEFAULT_WEIGHTS", "CompletenessWeights", "completeness_score"]
