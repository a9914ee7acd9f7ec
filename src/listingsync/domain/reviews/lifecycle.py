"""Reply lifecycle of a review: ``new -> pending_reply -> replied``.

Every operation that talks to the provider is two-phase. The review is loaded
and the transition checked in one unit of work, the provider call happens with
no session open, and only after the acknowledgment is the review reloaded and
the transition committed in a second unit of work. A failed call therefore
leaves the stored review exactly as it was.
"""

from __future__ import annotations

import asyncio
import weakref
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from listingsync.domain.errors import (
    EmptyReplyError,
    IllegalTransitionError,
    ProviderTimeoutError,
    ReplyTooLongError,
    ReviewNotFoundError,
)
from listingsync.domain.model import ReplyState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from uuid import UUID

    from listingsync.domain.model import Location, Review
    from listingsync.domain.ports import FetchedReview, ListingUnitOfWork, ReplySubmitter

log = getLogger(__name__)

DEFAULT_REPLY_MAX_LENGTH = 4096
DEFAULT_CALL_TIMEOUT_SECONDS = 30.0

type MutationListener = Callable[[], None]


def utc_now() -> datetime:
    return datetime.now(UTC)


def validate_reply_text(text: str, *, max_length: int = DEFAULT_REPLY_MAX_LENGTH) -> str:
    """Strip ``text`` and enforce the provider's limits."""

    cleaned = text.strip()
    if not cleaned:
        raise EmptyReplyError
    if len(cleaned) > max_length:
        raise ReplyTooLongError(len(cleaned), max_length)
    return cleaned


def admit(
    review: Review,
    *,
    reply_text: str | None = None,
    reply_timestamp: datetime | None = None,
) -> Review:
    """Make a freshly ingested review visible to the operator.

    A review that already carries a provider-side reply passes through
    ``pending_reply`` straight to ``replied``.
    """

    if review.reply_state is ReplyState.NEW:
        review.await_reply()
    if reply_text and review.reply_state is ReplyState.PENDING_REPLY:
        review.record_reply(reply_text, reply_timestamp or review.review_timestamp)
    return review


class ReviewLifecycleEngine:
    """Guards every reply-state transition of stored reviews."""

    def __init__(
        self,
        uow_factory: Callable[[], ListingUnitOfWork],
        submitter: ReplySubmitter,
        *,
        reply_max_length: int = DEFAULT_REPLY_MAX_LENGTH,
        call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._submitter = submitter
        self._reply_max_length = reply_max_length
        self._call_timeout = call_timeout_seconds
        self._clock = clock
        self._listeners: list[MutationListener] = []
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def reply_max_length(self) -> int:
        return self._reply_max_length

    def add_listener(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    def notify(self) -> None:
        for listener in self._listeners:
            listener()

    def validate_reply(self, text: str) -> str:
        return validate_reply_text(text, max_length=self._reply_max_length)

    # --- Ingestion -------------------------------------------------------------

    def ingest(self, uow: ListingUnitOfWork, location: Location, fetched: FetchedReview) -> bool:
        """Upsert one provider review inside the caller's unit of work.

        Returns True when a new review was stored. Ingestion never moves a
        replied review back to ``pending_reply``.
        """

        reviews = uow.repositories.reviews
        existing = reviews.get_by_external_id(fetched.external_review_id)
        if existing is None:
            review = admit(
                fetched.to_review(location.id),
                reply_text=fetched.reply_text,
                reply_timestamp=fetched.reply_timestamp,
            )
            reviews.add(review)
            return True

        existing.refresh_from(fetched)
        existing.updated_at = fetched.updated_at or existing.updated_at
        if existing.reply_state is not ReplyState.REPLIED:
            admit(
                existing,
                reply_text=fetched.reply_text,
                reply_timestamp=fetched.reply_timestamp,
            )
        elif fetched.reply_text and fetched.reply_text != existing.reply_text:
            existing.overwrite_reply(
                fetched.reply_text, fetched.reply_timestamp or existing.review_timestamp
            )
        elif not fetched.has_reply:
            log.debug(
                "Review %s lost its provider reply; keeping local replied state",
                existing.external_review_id,
            )
        return False

    # --- Two-phase transitions -------------------------------------------------

    async def reply_to_review(self, review_id: UUID, text: str) -> Review:
        """``pending_reply -> replied`` once the provider acknowledges ``text``."""

        cleaned = self.validate_reply(text)
        async with self._lock_for(review_id):
            external_id = self._load_for(review_id, ReplyState.PENDING_REPLY, "reply")
            ack = await self._call(self._submitter.submit_reply(external_id, cleaned))
            return self._commit(
                review_id,
                lambda review: review.record_reply(ack.comment or cleaned, ack.update_time),
            )

    async def update_reply(self, review_id: UUID, text: str) -> Review:
        """``replied -> replied`` with the new text."""

        cleaned = self.validate_reply(text)
        async with self._lock_for(review_id):
            external_id = self._load_for(review_id, ReplyState.REPLIED, "update a reply")
            ack = await self._call(self._submitter.submit_reply(external_id, cleaned))
            return self._commit(
                review_id,
                lambda review: review.overwrite_reply(ack.comment or cleaned, ack.update_time),
            )

    async def delete_reply(self, review_id: UUID) -> Review:
        """Remove the reply at the provider and reopen the review for a new one."""

        async with self._lock_for(review_id):
            external_id = self._load_for(review_id, ReplyState.REPLIED, "delete a reply")
            await self._call(self._submitter.delete_reply(external_id))
            return self._commit(review_id, lambda review: review.retract_reply())

    # --- Helpers ---------------------------------------------------------------

    def _lock_for(self, review_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(review_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[review_id] = lock
        return lock

    def _load_for(self, review_id: UUID, required: ReplyState, action: str) -> str:
        with self._uow_factory() as uow:
            review = uow.repositories.reviews.get(review_id)
            if review is None:
                raise ReviewNotFoundError(review_id)
            if review.reply_state is not required:
                raise IllegalTransitionError(review.id, review.reply_state, action)
            return review.external_review_id

    async def _call[T](self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._call_timeout)
        except TimeoutError as exc:
            raise ProviderTimeoutError(
                f"Provider call exceeded {self._call_timeout:g}s"
            ) from exc

    def _commit(self, review_id: UUID, apply: Callable[[Review], None]) -> Review:
        with self._uow_factory() as uow:
            review = uow.repositories.reviews.get(review_id)
            if review is None:
                raise ReviewNotFoundError(review_id)
            apply(review)
            review.updated_at = self._clock()
            uow.commit()
        log.info("Review %s is now %s", review.id, review.reply_state.value)
        self.notify()
        return review


__all__ = [
    "DEFAULT_REPLY_MAX_LENGTH",
    "MutationListener",
    "ReviewLifecycleEngine",
    "admit",
    "validate_reply_text",
]
