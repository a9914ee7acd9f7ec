"""Domain model for listings and reviews."""

from __future__ import annotations

from .entity import Entity, new_id
from .enums import (
    BulkAction,
    EntityKind,
    ItemOutcome,
    MergeReason,
    ReplyState,
    Sentiment,
    SyncStatus,
)
from .location import Location, LocationFields, LocationPayload
from .review import Review, validate_rating

__all__ = [
    "BulkAction",
    "Entity",
    "EntityKind",
    "ItemOutcome",
    "Location",
    "LocationFields",
    "LocationPayload",
    "MergeReason",
    "ReplyState",
    "Review",
    "Sentiment",
    "SyncStatus",
    "new_id",
    "validate_rating",
]
