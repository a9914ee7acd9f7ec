"""Error taxonomy shared by the sync, lifecycle and bulk components.

Every error raised by the domain derives from :class:`ListingSyncError` and
carries an :class:`ErrorKind` so callers (and the bulk coordinator) can decide
whether to retry, prompt for reauthorization or reject the input.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from uuid import UUID

    from listingsync.domain.model.enums import ReplyState


class ErrorKind(StrEnum):
    TRANSIENT = "transient"
    PERMISSION = "permission"
    VALIDATION = "validation"
    STATE = "state"
    NOT_FOUND = "not_found"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"


class ListingSyncError(Exception):
    """Base class for domain errors."""

    kind: ClassVar[ErrorKind] = ErrorKind.PERMANENT
    reauthorize: ClassVar[bool] = False


class TransientProviderError(ListingSyncError):
    """Network failure, 5xx or rate limiting; safe to retry later."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ProviderTimeoutError(TransientProviderError):
    """An outbound call exceeded its time budget."""


class PermanentProviderError(ListingSyncError):
    """The provider rejected the request in a way retrying will not fix."""

    kind = ErrorKind.PERMANENT

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InsufficientScopeError(PermanentProviderError):
    """The stored credentials lack the scope for this call; the user must reconnect."""

    kind = ErrorKind.PERMISSION
    reauthorize = True


class InvalidInputError(ListingSyncError, ValueError):
    """Rejected at the boundary; nothing was sent or persisted."""

    kind = ErrorKind.VALIDATION


class MalformedIdentifierError(InvalidInputError):
    def __init__(self, raw: str) -> None:
        super().__init__(f"Cannot extract a location id from {raw!r}")
        self.raw = raw


class ReplyTooLongError(InvalidInputError):
    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Reply is {length} characters; the provider accepts at most {limit}")
        self.length = length
        self.limit = limit


class EmptyReplyError(InvalidInputError):
    def __init__(self) -> None:
        super().__init__("Reply text must not be blank")


class InvalidRatingError(InvalidInputError):
    def __init__(self, rating: object) -> None:
        super().__init__(f"Rating must be an integer between 1 and 5, got {rating!r}")
        self.rating = rating


class MalformedCursorError(InvalidInputError):
    def __init__(self, token: str) -> None:
        super().__init__(f"Malformed pagination cursor: {token!r}")
        self.token = token


class BatchTooLargeError(InvalidInputError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Cannot act on {size} reviews at once (limit {limit})")
        self.size = size
        self.limit = limit


class IllegalTransitionError(ListingSyncError):
    """A reply-state transition that the lifecycle does not allow."""

    kind = ErrorKind.STATE

    def __init__(self, review_id: UUID, current: ReplyState, action: str) -> None:
        super().__init__(f"Review {review_id} is {current.value}; cannot {action}")
        self.review_id = review_id
        self.current = current
        self.action = action


class ReviewNotFoundError(ListingSyncError, LookupError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, review_id: object) -> None:
        super().__init__(f"Review not found: {review_id}")
        self.review_id = review_id


class LocationNotFoundError(ListingSyncError, LookupError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, normalized_id: str) -> None:
        super().__init__(f"Location not found: {normalized_id}")
        self.normalized_id = normalized_id


class OperationCancelledError(ListingSyncError):
    """The owning session went away before the operation finished."""

    kind = ErrorKind.CANCELLED


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception onto the error taxonomy."""

    if isinstance(exc, ListingSyncError):
        return exc.kind
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exc, TimeoutError):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


def requires_reauthorization(exc: BaseException) -> bool:
    return isinstance(exc, ListingSyncError) and exc.reauthorize
