"""Cursor-paginated review feed with whole-set aggregates."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .query import CursorPosition, ReviewAggregates

if TYPE_CHECKING:
    from collections.abc import Callable

    from listingsync.domain.model import Review
    from listingsync.domain.ports import ListingUnitOfWork

    from .query import FilterQuery

log = getLogger(__name__)

DEFAULT_AGGREGATE_CACHE_SIZE = 32


@dataclass(slots=True)
class ReviewPage:
    items: list[Review] = field(default_factory=list["Review"])
    next_cursor: str | None = None
    aggregates: ReviewAggregates = field(default_factory=ReviewAggregates)


class ReviewQueryEngine:
    """Serves :class:`ReviewPage` objects for a :class:`FilterQuery`.

    Aggregates describe the full filtered set, independent of the cursor. They
    are cached per filter and dropped on every mutation, so a query issued after
    a reply or an ingestion always sees fresh numbers. Search-as-you-type yields
    a new filter per keystroke, so only the most recently used filters are kept.
    """

    def __init__(
        self,
        uow_factory: Callable[[], ListingUnitOfWork],
        *,
        cache_size: int = DEFAULT_AGGREGATE_CACHE_SIZE,
    ) -> None:
        if cache_size < 1:
            raise ValueError("cache_size must be at least 1")
        self._uow_factory = uow_factory
        self._cache_size = cache_size
        self._aggregates: OrderedDict[FilterQuery, ReviewAggregates] = OrderedDict()
        self._generation = 0

    @property
    def cached_filters(self) -> int:
        return len(self._aggregates)

    @property
    def generation(self) -> int:
        return self._generation

    def record_mutation(self) -> None:
        """Invalidate cached aggregates; wired as a lifecycle mutation listener."""

        self._generation += 1
        self._aggregates.clear()

    def cached_aggregates(self, query: FilterQuery) -> ReviewAggregates | None:
        return self._aggregates.get(query.filter_key())

    async def query(self, query: FilterQuery) -> ReviewPage:
        position = query.position
        with self._uow_factory() as uow:
            reviews = uow.repositories.reviews
            rows = list(reviews.page(query, after=position, limit=query.limit + 1))
            key = query.filter_key()
            aggregates = self._aggregates.get(key)
            if aggregates is None:
                aggregates = reviews.aggregate(key)
                self._aggregates[key] = aggregates
                if len(self._aggregates) > self._cache_size:
                    self._aggregates.popitem(last=False)
            else:
                self._aggregates.move_to_end(key)
        items = rows[: query.limit]
        next_cursor = None
        if len(rows) > query.limit:
            next_cursor = CursorPosition.of(items[-1]).encode()
        log.debug(
            "Review page: %d items, more=%s, total=%d",
            len(items),
            next_cursor is not None,
            aggregates.total,
        )
        return ReviewPage(items=items, next_cursor=next_cursor, aggregates=aggregates)


__all__ = ["DEFAULT_AGGREGATE_CACHE_SIZE", "ReviewPage", "ReviewQueryEngine"]
