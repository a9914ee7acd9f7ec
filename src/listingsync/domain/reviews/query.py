"""Filter, ordering and cursor semantics for the review feed.

Feed order is ``review_timestamp`` descending with ties broken by ``id``
ascending. A cursor is the last ``(review_timestamp, id)`` pair of a page,
encoded as an opaque URL-safe token. The store adapters implement the same
rules in SQL; the functions here are the in-memory reference used by tests and
by small collections.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

from listingsync.domain.errors import InvalidInputError, MalformedCursorError
from listingsync.domain.model import ReplyState, Sentiment, validate_rating

if TYPE_CHECKING:
    from collections.abc import Iterable

    from listingsync.domain.model import Review

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MICROSECOND = timedelta(microseconds=1)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class CursorPosition:
    """Last-seen boundary of a page."""

    review_timestamp: datetime
    review_id: UUID

    @classmethod
    def of(cls, review: Review) -> CursorPosition:
        return cls(as_utc(review.review_timestamp), review.id)

    def encode(self) -> str:
        raw = json.dumps(
            {"t": as_utc(self.review_timestamp).isoformat(), "id": self.review_id.hex},
            separators=(",", ":"),
        ).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, token: str) -> CursorPosition:
        padded = token + "=" * (-len(token) % 4)
        try:
            data = json.loads(base64.urlsafe_b64decode(padded.encode()))
            timestamp = datetime.fromisoformat(data["t"])
            review_id = UUID(hex=data["id"])
        except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            raise MalformedCursorError(token) from exc
        return cls(as_utc(timestamp), review_id)


@dataclass(frozen=True, slots=True)
class FilterQuery:
    """Immutable description of one review feed request.

    Two queries that differ only in ``cursor`` address the same filtered set;
    :meth:`filter_key` is that set's identity.
    """

    location_id: UUID | None = None
    rating: int | None = None
    status: ReplyState | None = None
    sentiment: Sentiment | None = None
    search_term: str | None = None
    cursor: str | None = None
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        if self.rating is not None:
            validate_rating(self.rating)
        if self.search_term is not None:
            cleaned = self.search_term.strip()
            object.__setattr__(self, "search_term", cleaned or None)
        if not 1 <= self.limit <= MAX_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_LIMIT}, got {self.limit}")

    @property
    def position(self) -> CursorPosition | None:
        if self.cursor is None:
            return None
        return CursorPosition.decode(self.cursor)

    def filter_key(self) -> FilterQuery:
        """The same predicate without pagination state."""

        return replace(self, cursor=None, limit=DEFAULT_LIMIT)

    def with_cursor(self, cursor: str | None) -> FilterQuery:
        return replace(self, cursor=cursor)


def matches(review: Review, query: FilterQuery) -> bool:
    """True when ``review`` satisfies every predicate of ``query``."""

    if query.location_id is not None and review.location_id != query.location_id:
        return False
    if query.rating is not None and review.rating != query.rating:
        return False
    if query.status is not None and review.reply_state is not query.status:
        return False
    if query.sentiment is not None and review.sentiment is not query.sentiment:
        return False
    if query.search_term:
        needle = query.search_term.lower()
        haystacks = (review.reviewer_name or "", review.text or "")
        if not any(needle in haystack.lower() for haystack in haystacks):
            return False
    return True


def sort_key(review: Review) -> tuple[int, int]:
    micros = (as_utc(review.review_timestamp) - _EPOCH) // _MICROSECOND
    return (-micros, review.id.int)


def is_after(review: Review, position: CursorPosition) -> bool:
    """True when ``review`` comes strictly after ``position`` in feed order."""

    timestamp = as_utc(review.review_timestamp)
    if timestamp != position.review_timestamp:
        return timestamp < position.review_timestamp
    return review.id.int > position.review_id.int


@dataclass(frozen=True, slots=True)
class ReviewAggregates:
    """Statistics over a whole filtered set.

    ``pending`` counts every review without a reply, so
    ``total == pending + replied`` always holds.
    """

    total: int = 0
    pending: int = 0
    replied: int = 0
    average_rating: float = 0.0
    by_rating: dict[int, int] = field(default_factory=lambda: dict.fromkeys(range(1, 6), 0))
    by_sentiment: dict[Sentiment, int] = field(
        default_factory=lambda: dict.fromkeys(Sentiment, 0)
    )

    @property
    def response_rate(self) -> float:
        """Share of replied reviews in percent."""

        return self.replied / (self.total or 1) * 100


def aggregate_reviews(reviews: Iterable[Review]) -> ReviewAggregates:
    total = replied = rating_sum = 0
    by_rating = dict.fromkeys(range(1, 6), 0)
    by_sentiment = dict.fromkeys(Sentiment, 0)
    for review in reviews:
        total += 1
        rating_sum += review.rating
        by_rating[review.rating] += 1
        by_sentiment[review.sentiment] += 1
        if review.reply_state is ReplyState.REPLIED:
            replied += 1
    return ReviewAggregates(
        total=total,
        pending=total - replied,
        replied=replied,
        average_rating=rating_sum / (total or 1),
        by_rating=by_rating,
        by_sentiment=by_sentiment,
    )


def select_page(
    reviews: Iterable[Review], query: FilterQuery
) -> tuple[list[Review], str | None]:
    """Apply ``query`` to an in-memory collection and cut one page."""

    position = query.position
    ordered = sorted((review for review in reviews if matches(review, query)), key=sort_key)
    if position is not None:
        ordered = [review for review in ordered if is_after(review, position)]
    items = ordered[: query.limit]
    has_more = len(ordered) > query.limit
    next_cursor = CursorPosition.of(items[-1]).encode() if has_more and items else None
    return items, next_cursor


__all__ = [
    "CursorPosition",
    "FilterQuery",
    "ReviewAggregates",
    "aggregate_reviews",
    "as_utc",
    "is_after",
    "matches",
    "select_page",
    "sort_key",
]
