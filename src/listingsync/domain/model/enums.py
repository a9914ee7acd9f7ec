"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    """What a sync job fetches."""

    ACCOUNT = "account"
    LOCATION = "location"
    REVIEWS = "reviews"


class SyncStatus(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ReplyState(StrEnum):
    NEW = "new"
    PENDING_REPLY = "pending_reply"
    REPLIED = "replied"


class Sentiment(StrEnum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    UNSET = "unset"


class BulkAction(StrEnum):
    MARK_READ = "mark_read"
    MARK_UNREAD = "mark_unread"
    APPROVE_AND_POST_REPLY = "approve_and_post_reply"
    ADD_LABEL = "add_label"


class ItemOutcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


class MergeReason(StrEnum):
    INSERTED = "inserted"
    REPLACED_HIGHER_SCORE = "replaced_higher_score"
    REPLACED_NEWER = "replaced_newer"
    KEPT_EXISTING = "kept_existing"
