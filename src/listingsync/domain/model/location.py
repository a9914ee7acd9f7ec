"""Business listings as synchronized from the directory provider."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from listingsync.domain.model.entity import Entity

if TYPE_CHECKING:
    from datetime import datetime

    from listingsync.domain.model.review import Review


type LocationPayload = dict[str, object]


@dataclass(frozen=True, slots=True)
class LocationFields:
    """Typed subset of the provider payload shown on listing cards."""

    name: str | None = None
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    category: str | None = None

    def with_changes(self, **changes: str | None) -> LocationFields:
        return replace(self, **changes)


@dataclass(eq=False, kw_only=True)
class Location(Entity):
    """A listing keyed by its provider-independent ``normalized_id``.

    ``normalized_id`` and ``completeness_score`` are derived values; the
    reconciliation code recomputes them whenever records are merged.
    """

    external_id: str
    normalized_id: str
    fields: LocationFields = field(default_factory=LocationFields)
    payload: LocationPayload = field(default_factory=dict[str, object])
    completeness_score: int = 0
    updated_at: datetime | None = None
    last_synced_at: datetime | None = None

    _reviews: list[Review] = field(default_factory=list["Review"], repr=False, init=False)

    @property
    def reviews(self) -> tuple[Review, ...]:
        return tuple(self._reviews)

    @property
    def name(self) -> str | None:
        return self.fields.name

    def absorb(self, winner: Location) -> None:
        """Take over the content of ``winner`` while keeping this row's identity."""

        if winner is self:
            return
        if winner.normalized_id != self.normalized_id:
            raise ValueError(
                f"cannot merge {winner.normalized_id!r} into {self.normalized_id!r}"
            )
        self.external_id = winner.external_id
        self.fields = winner.fields
        self.payload = dict(winner.payload)
        self.completeness_score = winner.completeness_score
        self.updated_at = winner.updated_at

    def mark_synced(self, at: datetime) -> None:
        self.last_synced_at = at
