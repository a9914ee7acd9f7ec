"""Ports for talking to the directory provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from listingsync.domain.model import Review, Sentiment

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from listingsync.domain.model import Location


@dataclass(slots=True)
class LocationPage:
    """One page of an account's locations."""

    locations: list[Location] = field(default_factory=list["Location"])
    next_page_token: str | None = None


@dataclass(frozen=True, slots=True)
class FetchedReview:
    """A review as the provider reports it, before it is attached to a location."""

    external_review_id: str
    rating: int
    review_timestamp: datetime
    reviewer_name: str | None = None
    text: str | None = None
    reply_text: str | None = None
    reply_timestamp: datetime | None = None
    updated_at: datetime | None = None
    sentiment: Sentiment = Sentiment.UNSET

    @property
    def has_reply(self) -> bool:
        return bool(self.reply_text)

    def to_review(self, location_id: UUID) -> Review:
        return Review(
            external_review_id=self.external_review_id,
            location_id=location_id,
            rating=self.rating,
            review_timestamp=self.review_timestamp,
            reviewer_name=self.reviewer_name,
            text=self.text,
            sentiment=self.sentiment,
            updated_at=self.updated_at,
        )


@dataclass(slots=True)
class ReviewFetchPage:
    reviews: list[FetchedReview] = field(default_factory=list[FetchedReview])
    next_page_token: str | None = None
    average_rating: float | None = None
    total_review_count: int | None = None


@dataclass(frozen=True, slots=True)
class ReplyAck:
    """Provider acknowledgment of a posted reply."""

    comment: str
    update_time: datetime


@runtime_checkable
class DirectoryFetcher(Protocol):
    async def fetch_location(self, external_id: str) -> Location: ...

    async def list_locations(
        self, account_id: str, page_token: str | None = None
    ) -> LocationPage: ...


@runtime_checkable
class ReviewFetcher(Protocol):
    async def list_reviews(
        self, location_external_id: str, page_token: str | None = None
    ) -> ReviewFetchPage: ...


@runtime_checkable
class ReplySubmitter(Protocol):
    """Posts and removes replies at the provider.

    Implementations raise the provider errors from
    :mod:`listingsync.domain.errors`; they never retry on their own behalf.
    """

    async def submit_reply(self, review_external_id: str, text: str) -> ReplyAck: ...

    async def delete_reply(self, review_external_id: str) -> None: ...


__all__ = [
    "DirectoryFetcher",
    "FetchedReview",
    "LocationPage",
    "ReplyAck",
    "ReplySubmitter",
    "ReviewFetchPage",
    "ReviewFetcher",
]
