"""Port for the opaque reply-suggestion service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from listingsync.domain.model import Review


@runtime_checkable
class ReplySuggester(Protocol):
    """Produces a draft reply for a review."""

    async def suggest_reply(self, review: Review) -> str: ...


__all__ = ["ReplySuggester"]
