"""Translate Google Business Profile payloads into domain objects."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from logging import getLogger

from listingsync.domain.identity import normalize_location_id
from listingsync.domain.model import Location, LocationFields
from listingsync.domain.ports import FetchedReview

from .schema import LocationPayload, ReviewPayload

log = getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_location(payload: Mapping[str, object]) -> Location:
    """Build a :class:`Location` from a v1 location resource.

    v1 resources usually carry no modification time. ``updated_at`` then stays
    ``None`` and ranks oldest, so re-fetching an unchanged listing keeps the
    stored row.
    """

    model = LocationPayload.model_validate(payload)
    category = None
    if model.categories and model.categories.primary_category:
        category = model.categories.primary_category.display_name
    fields = LocationFields(
        name=model.title,
        address=model.storefront_address.formatted() if model.storefront_address else None,
        phone=model.phone_numbers.primary_phone if model.phone_numbers else None,
        website=model.website_uri,
        category=category,
    )
    return Location(
        external_id=model.name,
        normalized_id=normalize_location_id(model.name),
        fields=fields,
        payload=dict(payload),
        updated_at=_as_utc(model.update_time),
    )


def parse_review(payload: Mapping[str, object]) -> FetchedReview | None:
    """Build a :class:`FetchedReview`; reviews without a star rating are skipped."""

    model = ReviewPayload.model_validate(payload)
    rating = model.rating
    if rating is None:
        log.warning("Skipping review %s without a star rating", model.name)
        return None
    reviewer_name = None
    if model.reviewer is not None and not model.reviewer.is_anonymous:
        reviewer_name = model.reviewer.display_name
    reply = model.review_reply
    return FetchedReview(
        external_review_id=model.name,
        rating=rating,
        review_timestamp=_as_utc(model.create_time) or model.create_time,
        reviewer_name=reviewer_name,
        text=model.comment,
        reply_text=reply.comment if reply is not None else None,
        reply_timestamp=_as_utc(reply.update_time) if reply is not None else None,
        updated_at=_as_utc(model.update_time),
    )


__all__ = ["parse_location", "parse_review"]
