"""Request coalescing for the review feed.

Search-as-you-type produces bursts of queries. Instead of a UI timer, the
coalescer applies two rules at the query boundary:

* identical queries in flight at the same time share one evaluation;
* a session that issues a new query within the quiet period supersedes its
  older one, whose caller receives :class:`QuerySupersededError`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from listingsync.domain.errors import ListingSyncError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Hashable

    from .pagination import ReviewPage
    from .query import FilterQuery

log = getLogger(__name__)

DEFAULT_QUIET_PERIOD_SECONDS = 0.25


class QuerySupersededError(ListingSyncError):
    """A newer query from the same session replaced this one."""

    def __init__(self, query: FilterQuery) -> None:
        super().__init__("Query superseded by a newer request from the same session")
        self.query = query


@dataclass(slots=True)
class _Pending:
    query: FilterQuery
    task: asyncio.Future[ReviewPage]
    waiters: int = 0


class QueryCoalescer:
    def __init__(
        self,
        evaluate: Callable[[FilterQuery], Awaitable[ReviewPage]],
        *,
        quiet_period_seconds: float = DEFAULT_QUIET_PERIOD_SECONDS,
    ) -> None:
        self._evaluate = evaluate
        self._quiet_period = quiet_period_seconds
        self._in_flight: dict[FilterQuery, _Pending] = {}
        self._latest_by_session: dict[Hashable, object] = {}

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def run(self, query: FilterQuery, *, session: Hashable | None = None) -> ReviewPage:
        ticket = object()
        if session is not None:
            self._latest_by_session[session] = ticket
        try:
            if self._quiet_period > 0 and session is not None:
                await asyncio.sleep(self._quiet_period)
                if self._latest_by_session.get(session) is not ticket:
                    log.debug("Dropping superseded query for session %r", session)
                    raise QuerySupersededError(query)
            return await self._shared(query)
        finally:
            if session is not None and self._latest_by_session.get(session) is ticket:
                del self._latest_by_session[session]

    async def _shared(self, query: FilterQuery) -> ReviewPage:
        pending = self._in_flight.get(query)
        if pending is None:
            task = asyncio.ensure_future(self._evaluate(query))
            pending = _Pending(query=query, task=task)
            self._in_flight[query] = pending
            task.add_done_callback(lambda _: self._forget(query, task))
        pending.waiters += 1
        try:
            return await asyncio.shield(pending.task)
        finally:
            pending.waiters -= 1
            if pending.waiters == 0 and not pending.task.done():
                pending.task.cancel()

    def _forget(self, query: FilterQuery, task: asyncio.Future[ReviewPage]) -> None:
        pending = self._in_flight.get(query)
        if pending is not None and pending.task is task:
            del self._in_flight[query]


__all__ = ["DEFAULT_QUIET_PERIOD_SECONDS", "QueryCoalescer", "QuerySupersededError"]
