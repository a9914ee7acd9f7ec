from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from listingsync.domain.errors import IllegalTransitionError, InvalidRatingError
from listingsync.domain.model import ReplyState, Review

AT = datetime(2024, 5, 2, tzinfo=UTC)


def _review(**overrides: object) -> Review:
    values: dict[str, object] = {
        "external_review_id": "accounts/1/locations/42/reviews/r1",
        "location_id": uuid4(),
        "rating": 4,
        "review_timestamp": AT,
    }
    values.update(overrides)
    return Review(**values)  # pyright: ignore[reportArgumentType]


def test_new_review_starts_in_new_state() -> None:
    review = _review()

    assert review.reply_state is ReplyState.NEW
    assert not review.has_reply


def test_full_lifecycle_walks_every_legal_transition() -> None:
    review = _review()

    review.await_reply()
    review.record_reply("Thanks!", AT)
    review.overwrite_reply("Thank you!", AT)

    assert review.reply_state is ReplyState.REPLIED
    assert review.reply_text == "Thank you!"

    review.retract_reply()

    assert review.reply_state is ReplyState.PENDING_REPLY
    assert review.reply_text is None
    assert review.reply_timestamp is None


def test_replying_to_a_new_review_is_illegal() -> None:
    review = _review()

    with pytest.raises(IllegalTransitionError) as excinfo:
        review.record_reply("Thanks!", AT)

    assert excinfo.value.current is ReplyState.NEW
    assert review.reply_state is ReplyState.NEW


def test_replied_review_cannot_be_replied_to_again() -> None:
    review = _review()
    review.await_reply()
    review.record_reply("Thanks!", AT)

    with pytest.raises(IllegalTransitionError):
        review.record_reply("Again", AT)
    with pytest.raises(IllegalTransitionError):
        review.await_reply()

    assert review.reply_text == "Thanks!"


def test_pending_review_cannot_be_overwritten_or_retracted() -> None:
    review = _review()
    review.await_reply()

    with pytest.raises(IllegalTransitionError):
        review.overwrite_reply("x", AT)
    with pytest.raises(IllegalTransitionError):
        review.retract_reply()


@pytest.mark.parametrize("rating", [0, 6, -1, True, 3.5, "5"])
def test_rating_outside_one_to_five_is_rejected(rating: object) -> None:
    with pytest.raises(InvalidRatingError):
        _review(rating=rating)


def test_labels_are_stripped_and_deduplicated() -> None:
    review = _review()

    review.add_label(" urgent ")
    review.add_label("urgent")

    assert review.labels == {"urgent"}


def test_blank_label_is_rejected() -> None:
    with pytest.raises(ValueError, match="blank"):
        _review().add_label("  ")


def test_read_flag_toggles() -> None:
    review = _review()

    review.mark_read()
    assert review.is_read
    review.mark_unread()
    assert not review.is_read
