"""Bulk actions over a selection of reviews.

Items are processed by a fixed pool of workers. Each item succeeds or fails on
its own; a failure is classified with :func:`classify_error` and never undoes
another item's success. The coordinator does not retry anything, the caller
resubmits :attr:`BulkResult.failed_ids` if it wants to.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from listingsync.domain.errors import (
    BatchTooLargeError,
    ErrorKind,
    InvalidInputError,
    ListingSyncError,
    OperationCancelledError,
    ReviewNotFoundError,
    classify_error,
    requires_reauthorization,
)
from listingsync.domain.model import BulkAction, ItemOutcome

from .lifecycle import DEFAULT_REPLY_MAX_LENGTH, validate_reply_text

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from listingsync.domain.model import Review
    from listingsync.domain.ports import ListingUnitOfWork, ReplySuggester

    from .lifecycle import ReviewLifecycleEngine

log = getLogger(__name__)

DEFAULT_WORKER_LIMIT = 5
DEFAULT_MAX_ITEMS = 50


@dataclass(slots=True)
class SelectionBatch:
    """Review ids selected for one action, unique and in selection order."""

    items: tuple[UUID, ...]
    action: BulkAction
    label: str | None = None
    reply_text: str | None = None
    outcomes: dict[UUID, ItemOutcome] = field(default_factory=dict["UUID", ItemOutcome])

    @classmethod
    def create(
        cls,
        review_ids: Iterable[UUID],
        action: BulkAction,
        *,
        label: str | None = None,
        reply_text: str | None = None,
        max_items: int = DEFAULT_MAX_ITEMS,
        reply_max_length: int = DEFAULT_REPLY_MAX_LENGTH,
    ) -> SelectionBatch:
        items = tuple(dict.fromkeys(review_ids))
        if not items:
            raise InvalidInputError("Select at least one review")
        if len(items) > max_items:
            raise BatchTooLargeError(len(items), max_items)
        if action is BulkAction.ADD_LABEL:
            if label is None or not label.strip():
                raise InvalidInputError("add_label needs a non-blank label")
            label = label.strip()
        if reply_text is not None:
            reply_text = validate_reply_text(reply_text, max_length=reply_max_length)
        batch = cls(items=items, action=action, label=label, reply_text=reply_text)
        batch.outcomes = dict.fromkeys(items, ItemOutcome.PENDING)
        return batch

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True, slots=True)
class ItemResult:
    review_id: UUID
    outcome: ItemOutcome
    error_kind: ErrorKind | None = None
    message: str | None = None
    reauthorize: bool = False


@dataclass(slots=True)
class BulkResult:
    action: BulkAction
    items: list[ItemResult] = field(default_factory=list[ItemResult])

    @property
    def succeeded(self) -> list[UUID]:
        return [item.review_id for item in self.items if item.outcome is ItemOutcome.SUCCESS]

    @property
    def failed(self) -> list[ItemResult]:
        return [item for item in self.items if item.outcome is ItemOutcome.FAILURE]

    @property
    def failed_ids(self) -> list[UUID]:
        return [item.review_id for item in self.failed]

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def reauthorize_required(self) -> bool:
        return any(item.reauthorize for item in self.items)


class BulkActionCoordinator:
    def __init__(
        self,
        uow_factory: Callable[[], ListingUnitOfWork],
        lifecycle: ReviewLifecycleEngine,
        suggester: ReplySuggester | None = None,
        *,
        worker_limit: int = DEFAULT_WORKER_LIMIT,
    ) -> None:
        if worker_limit < 1:
            raise ValueError("worker_limit must be at least 1")
        self._uow_factory = uow_factory
        self._lifecycle = lifecycle
        self._suggester = suggester
        self._worker_limit = worker_limit

    async def submit(
        self, batch: SelectionBatch, *, cancel_event: asyncio.Event | None = None
    ) -> BulkResult:
        queue: asyncio.Queue[UUID] = asyncio.Queue()
        for review_id in batch.items:
            queue.put_nowait(review_id)
        results: dict[UUID, ItemResult] = {}

        async def worker() -> None:
            while True:
                try:
                    review_id = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if cancel_event is not None and cancel_event.is_set():
                    results[review_id] = self._failure(
                        review_id, OperationCancelledError("Bulk action cancelled")
                    )
                else:
                    results[review_id] = await self._run_item(batch, review_id)
                batch.outcomes[review_id] = results[review_id].outcome

        workers = min(self._worker_limit, len(batch.items))
        await asyncio.gather(*(worker() for _ in range(workers)))

        result = BulkResult(action=batch.action, items=[results[i] for i in batch.items])
        log.info(
            "Bulk %s finished: %d succeeded, %d failed",
            batch.action.value,
            result.succeeded_count,
            result.failed_count,
        )
        return result

    async def _run_item(self, batch: SelectionBatch, review_id: UUID) -> ItemResult:
        try:
            await self._apply(batch, review_id)
        except ListingSyncError as exc:
            log.warning("Bulk %s failed for %s: %s", batch.action.value, review_id, exc)
            return self._failure(review_id, exc)
        except Exception as exc:
            log.exception("Unexpected error in bulk %s for %s", batch.action.value, review_id)
            return self._failure(review_id, exc)
        return ItemResult(review_id=review_id, outcome=ItemOutcome.SUCCESS)

    @staticmethod
    def _failure(review_id: UUID, exc: BaseException) -> ItemResult:
        return ItemResult(
            review_id=review_id,
            outcome=ItemOutcome.FAILURE,
            error_kind=classify_error(exc),
            message=str(exc) or type(exc).__name__,
            reauthorize=requires_reauthorization(exc),
        )

    async def _apply(self, batch: SelectionBatch, review_id: UUID) -> None:
        if batch.action is BulkAction.APPROVE_AND_POST_REPLY:
            text = batch.reply_text or await self._reply_text_for(review_id)
            await self._lifecycle.reply_to_review(review_id, text)
            return

        with self._uow_factory() as uow:
            review = uow.repositories.reviews.get(review_id)
            if review is None:
                raise ReviewNotFoundError(review_id)
            match batch.action:
                case BulkAction.MARK_READ:
                    review.mark_read()
                case BulkAction.MARK_UNREAD:
                    review.mark_unread()
                case BulkAction.ADD_LABEL:
                    review.add_label(batch.label or "")
            uow.commit()
        self._lifecycle.notify()

    async def _reply_text_for(self, review_id: UUID) -> str:
        with self._uow_factory() as uow:
            review: Review | None = uow.repositories.reviews.get(review_id)
            if review is None:
                raise ReviewNotFoundError(review_id)
            if review.suggested_reply:
                return review.suggested_reply
        if self._suggester is None:
            raise InvalidInputError(f"No reply text or suggestion available for review {review_id}")
        return await self._suggester.suggest_reply(review)


__all__ = [
    "BulkActionCoordinator",
    "BulkResult",
    "ItemResult",
    "SelectionBatch",
]
