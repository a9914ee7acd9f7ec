"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select

from listingsync.adapters.sqlalchemy.mappings import location_table, review_table
from listingsync.domain.model import Location, ReplyState, Review, Sentiment
from listingsync.domain.reviews.query import ReviewAggregates, as_utc

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy import ColumnElement
    from sqlalchemy.orm import Session

    from listingsync.domain.reviews.query import CursorPosition, FilterQuery


class SqlAlchemyLocationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Location) -> None:
        self.session.add(entity)

    def get(self, location_id: UUID) -> Location | None:
        return self.session.get(Location, location_id)

    def get_by_normalized_id(self, normalized_id: str) -> Location | None:
        stmt = select(Location).where(location_table.c.normalized_id == normalized_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_all(self) -> Sequence[Location]:
        stmt = select(Location).order_by(location_table.c.normalized_id)
        return self.session.execute(stmt).scalars().all()

    def remove(self, location: Location) -> None:
        self.session.delete(location)


def filter_conditions(query: FilterQuery) -> list[ColumnElement[bool]]:
    """SQL rendering of :func:`listingsync.domain.reviews.query.matches`."""

    columns = review_table.c
    conditions: list[ColumnElement[bool]] = []
    if query.location_id is not None:
        conditions.append(columns.location_id == query.location_id)
    if query.rating is not None:
        conditions.append(columns.rating == query.rating)
    if query.status is not None:
        conditions.append(columns.reply_state == query.status)
    if query.sentiment is not None:
        conditions.append(columns.sentiment == query.sentiment)
    if query.search_term:
        needle = query.search_term.lower()
        conditions.append(
            or_(
                func.lower(func.coalesce(columns.reviewer_name, "")).contains(
                    needle, autoescape=True
                ),
                func.lower(func.coalesce(columns.text, "")).contains(needle, autoescape=True),
            )
        )
    return conditions


def after_condition(position: CursorPosition) -> ColumnElement[bool]:
    columns = review_table.c
    timestamp = as_utc(position.review_timestamp)
    return or_(
        columns.review_timestamp < timestamp,
        and_(columns.review_timestamp == timestamp, columns.id > position.review_id),
    )


class SqlAlchemyReviewRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Review) -> None:
        self.session.add(entity)

    def get(self, review_id: UUID) -> Review | None:
        return self.session.get(Review, review_id)

    def get_by_external_id(self, external_review_id: str) -> Review | None:
        stmt = select(Review).where(review_table.c.external_review_id == external_review_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_location(self, location_id: UUID) -> Sequence[Review]:
        stmt = (
            select(Review)
            .where(review_table.c.location_id == location_id)
            .order_by(review_table.c.review_timestamp.desc(), review_table.c.id.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def page(
        self, query: FilterQuery, *, after: CursorPosition | None, limit: int
    ) -> Sequence[Review]:
        conditions = filter_conditions(query)
        if after is not None:
            conditions.append(after_condition(after))
        stmt = (
            select(Review)
            .where(*conditions)
            .order_by(review_table.c.review_timestamp.desc(), review_table.c.id.asc())
            .limit(limit)
        )
        return self.session.execute(stmt).scalars().all()

    def aggregate(self, query: FilterQuery) -> ReviewAggregates:
        columns = review_table.c
        conditions = filter_conditions(query)

        by_rating = dict.fromkeys(range(1, 6), 0)
        rating_stmt = (
            select(columns.rating, func.count()).where(*conditions).group_by(columns.rating)
        )
        for rating, count in self.session.execute(rating_stmt):
            by_rating[rating] = count

        by_sentiment = dict.fromkeys(Sentiment, 0)
        sentiment_stmt = (
            select(columns.sentiment, func.count())
            .where(*conditions)
            .group_by(columns.sentiment)
        )
        for sentiment, count in self.session.execute(sentiment_stmt):
            by_sentiment[sentiment] = count

        replied_stmt = (
            select(func.count())
            .select_from(review_table)
            .where(*conditions, columns.reply_state == ReplyState.REPLIED)
        )
        replied = self.session.execute(replied_stmt).scalar_one()

        total = sum(by_rating.values())
        rating_sum = sum(rating * count for rating, count in by_rating.items())
        return ReviewAggregates(
            total=total,
            pending=total - replied,
            replied=replied,
            average_rating=rating_sum / (total or 1),
            by_rating=by_rating,
            by_sentiment=by_sentiment,
        )


__all__ = [
    "SqlAlchemyLocationRepository",
    "SqlAlchemyReviewRepository",
    "after_condition",
    "filter_conditions",
]
