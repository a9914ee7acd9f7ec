"""Ports for persisting locations and reviews."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from listingsync.domain.model import Location, Review

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from listingsync.domain.reviews.query import CursorPosition, FilterQuery, ReviewAggregates


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class LocationRepository(Repository[Location], Protocol):
    def get(self, location_id: UUID) -> Location | None: ...

    def get_by_normalized_id(self, normalized_id: str) -> Location | None: ...

    def list_all(self) -> Sequence[Location]: ...

    def remove(self, location: Location) -> None: ...


@runtime_checkable
class ReviewRepository(Repository[Review], Protocol):
    def get(self, review_id: UUID) -> Review | None: ...

    def get_by_external_id(self, external_review_id: str) -> Review | None: ...

    def list_for_location(self, location_id: UUID) -> Sequence[Review]: ...

    def page(
        self, query: FilterQuery, *, after: CursorPosition | None, limit: int
    ) -> Sequence[Review]:
        """Matching reviews in feed order, strictly after ``after``."""
        ...

    def aggregate(self, query: FilterQuery) -> ReviewAggregates:
        """Statistics over every review matching ``query``, ignoring its cursor."""
        ...


__all__ = ["LocationRepository", "Repository", "ReviewRepository"]
