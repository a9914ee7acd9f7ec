"""Customer reviews and their reply state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from listingsync.domain.errors import IllegalTransitionError, InvalidRatingError
from listingsync.domain.model.entity import Entity
from listingsync.domain.model.enums import ReplyState, Sentiment

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


def validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRatingError(rating)
    return rating


@dataclass(eq=False, kw_only=True)
class Review(Entity):
    """A review owned by exactly one location.

    The reply-state methods below are the only way ``reply_state`` changes; each
    one checks that the transition is legal and raises
    :class:`IllegalTransitionError` otherwise.
    """

    external_review_id: str
    location_id: UUID
    rating: int
    review_timestamp: datetime
    reviewer_name: str | None = None
    text: str | None = None
    sentiment: Sentiment = Sentiment.UNSET
    reply_state: ReplyState = ReplyState.NEW
    reply_text: str | None = None
    reply_timestamp: datetime | None = None
    is_read: bool = False
    labels: set[str] = field(default_factory=set[str])
    suggested_reply: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        validate_rating(self.rating)

    @property
    def has_reply(self) -> bool:
        return self.reply_state is ReplyState.REPLIED

    def await_reply(self) -> None:
        """``new -> pending_reply``: the review became visible to the operator."""

        if self.reply_state is not ReplyState.NEW:
            raise IllegalTransitionError(self.id, self.reply_state, "await a reply")
        self.reply_state = ReplyState.PENDING_REPLY

    def record_reply(self, text: str, at: datetime) -> None:
        """``pending_reply -> replied`` after the provider acknowledged the reply."""

        if self.reply_state is not ReplyState.PENDING_REPLY:
            raise IllegalTransitionError(self.id, self.reply_state, "record a first reply")
        self.reply_state = ReplyState.REPLIED
        self.reply_text = text
        self.reply_timestamp = at

    def overwrite_reply(self, text: str, at: datetime) -> None:
        """``replied -> replied``: the reply was edited at the provider."""

        if self.reply_state is not ReplyState.REPLIED:
            raise IllegalTransitionError(self.id, self.reply_state, "update a reply")
        self.reply_text = text
        self.reply_timestamp = at

    def retract_reply(self) -> None:
        """``replied -> pending_reply``; only reachable through an explicit edit action."""

        if self.reply_state is not ReplyState.REPLIED:
            raise IllegalTransitionError(self.id, self.reply_state, "retract a reply")
        self.reply_state = ReplyState.PENDING_REPLY
        self.reply_text = None
        self.reply_timestamp = None

    def mark_read(self) -> None:
        self.is_read = True

    def mark_unread(self) -> None:
        self.is_read = False

    def add_label(self, label: str) -> None:
        cleaned = label.strip()
        if not cleaned:
            raise ValueError("label must not be blank")
        # Reassign so the ORM sees a new value for the JSON-backed column.
        self.labels = {*self.labels, cleaned}

    def refresh_from(self, fetched: Review) -> None:
        """Copy provider-owned content from a freshly fetched copy of this review."""

        self.reviewer_name = fetched.reviewer_name
        self.rating = validate_rating(fetched.rating)
        self.text = fetched.text
        self.review_timestamp = fetched.review_timestamp
        if fetched.sentiment is not Sentiment.UNSET:
            self.sentiment = fetched.sentiment
