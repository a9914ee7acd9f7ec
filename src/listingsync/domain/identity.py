"""Canonical keys for provider location identifiers.

The provider refers to the same listing as ``"123"``, ``"locations/123"`` or
``"accounts/7/locations/123"`` depending on the endpoint; review resource names
and dashboard URLs embed the same path. Everything here is pure.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from listingsync.domain.errors import MalformedIdentifierError

_TOKEN = re.compile(r"^[A-Za-z0-9_-]+$")
_LOCATIONS_SEGMENT = "locations"
_ACCOUNTS_SEGMENT = "accounts"


def _segments(raw: str) -> list[str]:
    text = raw.strip()
    if "://" in text:
        text = urlsplit(text).path
    else:
        text = text.split("?", 1)[0].split("#", 1)[0]
    return [segment for segment in text.split("/") if segment]


def normalize_location_id(raw: str) -> str:
    """Return the bare entity number referenced by ``raw``.

    The last ``locations/{id}`` pair wins, so review resource names
    (``.../locations/{id}/reviews/{review}``) resolve to their owning location.
    """

    segments = _segments(raw)
    if len(segments) == 1 and _TOKEN.match(segments[0]) and segments[0] != _LOCATIONS_SEGMENT:
        return segments[0]
    for index in range(len(segments) - 2, -1, -1):
        if segments[index] != _LOCATIONS_SEGMENT:
            continue
        candidate = segments[index + 1]
        if _TOKEN.match(candidate):
            return candidate
        break
    raise MalformedIdentifierError(raw)


def same_location(a: str, b: str) -> bool:
    return normalize_location_id(a) == normalize_location_id(b)


def location_resource_name(account_id: str | None, location_id: str) -> str:
    """Build the compound ``accounts/{a}/locations/{id}`` form the v4 API expects."""

    bare = normalize_location_id(location_id)
    if not account_id:
        return f"{_LOCATIONS_SEGMENT}/{bare}"
    account = account_id.strip().removeprefix(f"{_ACCOUNTS_SEGMENT}/").strip("/")
    if not _TOKEN.match(account):
        raise MalformedIdentifierError(account_id)
    return f"{_ACCOUNTS_SEGMENT}/{account}/{_LOCATIONS_SEGMENT}/{bare}"


def location_id_from_review_name(review_name: str) -> str:
    segments = _segments(review_name)
    if "reviews" not in segments:
        raise MalformedIdentifierError(review_name)
    owner = "/".join(segments[: segments.index("reviews")])
    return normalize_location_id(owner)


__all__ = [
    "location_id_from_review_name",
    "location_resource_name",
    "normalize_location_id",
    "same_location",
]
