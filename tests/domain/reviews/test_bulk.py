from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import pytest

from listingsync.domain.errors import (
    BatchTooLargeError,
    ErrorKind,
    InsufficientScopeError,
    InvalidInputError,
    PermanentProviderError,
    ReplyTooLongError,
)
from listingsync.domain.model import BulkAction, ItemOutcome, ReplyState
from listingsync.domain.reviews import (
    BulkActionCoordinator,
    ReviewLifecycleEngine,
    SelectionBatch,
)
from tests.helpers.fakes import FakeProvider, FakeStore, FakeSuggester
from tests.helpers.listings import make_location, make_review


def _seed(store: FakeStore, count: int, **review_kwargs: object) -> list[UUID]:
    location = make_location()
    store.locations[location.id] = location
    ids: list[UUID] = []
    for _ in range(count):
        review = make_review(location.id, **review_kwargs)  # pyright: ignore[reportArgumentType]
        store.reviews[review.id] = review
        ids.append(review.id)
    return ids


def _coordinator(
    store: FakeStore,
    provider: FakeProvider,
    suggester: FakeSuggester | None = None,
    *,
    worker_limit: int = 5,
) -> BulkActionCoordinator:
    lifecycle = ReviewLifecycleEngine(store.unit_of_work, provider)
    return BulkActionCoordinator(store.unit_of_work, lifecycle, suggester, worker_limit=worker_limit)


def test_selection_is_deduplicated_in_order() -> None:
    a, b = uuid4(), uuid4()

    batch = SelectionBatch.create([a, b, a], BulkAction.MARK_READ)

    assert batch.items == (a, b)
    assert set(batch.outcomes.values()) == {ItemOutcome.PENDING}


def test_empty_selection_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        SelectionBatch.create([], BulkAction.MARK_READ)


def test_oversized_selection_is_rejected() -> None:
    with pytest.raises(BatchTooLargeError) as excinfo:
        SelectionBatch.create([uuid4() for _ in range(4)], BulkAction.MARK_READ, max_items=3)

    assert excinfo.value.limit == 3


def test_add_label_requires_a_label() -> None:
    with pytest.raises(InvalidInputError):
        SelectionBatch.create([uuid4()], BulkAction.ADD_LABEL, label="  ")


def test_failure_of_one_item_does_not_affect_the_others(
    store: FakeStore, provider: FakeProvider
) -> None:
    ids = _seed(store, 5)
    third = store.reviews[ids[2]]
    provider.reply_failures[third.external_review_id] = PermanentProviderError(
        "reply rejected", status_code=400
    )
    batch = SelectionBatch.create(
        ids, BulkAction.APPROVE_AND_POST_REPLY, reply_text="Thanks for visiting!"
    )

    result = asyncio.run(_coordinator(store, provider, worker_limit=2).submit(batch))

    assert result.succeeded == [ids[0], ids[1], ids[3], ids[4]]
    assert result.failed_ids == [ids[2]]
    assert result.failed[0].error_kind is ErrorKind.PERMANENT
    assert third.reply_state is ReplyState.PENDING_REPLY
    assert all(store.reviews[i].reply_state is ReplyState.REPLIED for i in result.succeeded)
    assert batch.outcomes[ids[2]] is ItemOutcome.FAILURE
    assert batch.outcomes[ids[0]] is ItemOutcome.SUCCESS


def test_permission_failure_flags_reauthorization(
    store: FakeStore, provider: FakeProvider
) -> None:
    ids = _seed(store, 2)
    provider.fail_next("submit_reply", InsufficientScopeError("scope", status_code=403))
    batch = SelectionBatch.create(ids, BulkAction.APPROVE_AND_POST_REPLY, reply_text="Thanks")

    result = asyncio.run(_coordinator(store, provider, worker_limit=1).submit(batch))

    assert result.reauthorize_required
    assert result.failed[0].error_kind is ErrorKind.PERMISSION
    assert result.succeeded_count == 1


def test_approve_uses_stored_suggestion_then_suggester(
    store: FakeStore, provider: FakeProvider
) -> None:
    drafted = _seed(store, 1, suggested_reply="We appreciate it!")
    undrafted = _seed(store, 1)
    suggester = FakeSuggester("Thank you for your feedback!")
    batch = SelectionBatch.create([*drafted, *undrafted], BulkAction.APPROVE_AND_POST_REPLY)

    result = asyncio.run(_coordinator(store, provider, suggester).submit(batch))

    assert result.failed == []
    assert store.reviews[drafted[0]].reply_text == "We appreciate it!"
    assert store.reviews[undrafted[0]].reply_text == "Thank you for your feedback!"
    assert suggester.requested == undrafted


def test_approve_without_text_or_suggester_fails_validation(
    store: FakeStore, provider: FakeProvider
) -> None:
    ids = _seed(store, 1)
    batch = SelectionBatch.create(ids, BulkAction.APPROVE_AND_POST_REPLY)

    result = asyncio.run(_coordinator(store, provider).submit(batch))

    assert result.failed[0].error_kind is ErrorKind.VALIDATION
    assert provider.calls == []


def test_batch_reply_text_respects_a_lower_limit() -> None:
    with pytest.raises(ReplyTooLongError):
        SelectionBatch.create(
            [uuid4()], BulkAction.APPROVE_AND_POST_REPLY, reply_text="Thanks", reply_max_length=3
        )


def test_mark_read_and_label(store: FakeStore, provider: FakeProvider) -> None:
    ids = _seed(store, 3)
    coordinator = _coordinator(store, provider)

    asyncio.run(coordinator.submit(SelectionBatch.create(ids, BulkAction.MARK_READ)))
    asyncio.run(
        coordinator.submit(SelectionBatch.create(ids[:1], BulkAction.ADD_LABEL, label="vip"))
    )

    assert all(store.reviews[i].is_read for i in ids)
    assert store.reviews[ids[0]].labels == {"vip"}
    assert store.commits == 4


def test_missing_review_is_reported_as_not_found(
    store: FakeStore, provider: FakeProvider
) -> None:
    missing = uuid4()
    batch = SelectionBatch.create([missing], BulkAction.MARK_UNREAD)

    result = asyncio.run(_coordinator(store, provider).submit(batch))

    assert result.failed[0].error_kind is ErrorKind.NOT_FOUND


def test_cancellation_fails_items_not_yet_started(
    store: FakeStore, provider: FakeProvider
) -> None:
    ids = _seed(store, 4)
    cancel = asyncio.Event()
    cancel.set()
    batch = SelectionBatch.create(ids, BulkAction.MARK_READ)

    result = asyncio.run(_coordinator(store, provider).submit(batch, cancel_event=cancel))

    assert result.succeeded == []
    assert {item.error_kind for item in result.failed} == {ErrorKind.CANCELLED}
    assert not any(store.reviews[i].is_read for i in ids)


def test_invalid_worker_limit_is_rejected(store: FakeStore, provider: FakeProvider) -> None:
    with pytest.raises(ValueError, match="worker_limit"):
        _coordinator(store, provider, worker_limit=0)
