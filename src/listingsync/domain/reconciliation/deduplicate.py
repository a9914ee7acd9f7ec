"""Merge location records that reference the same listing.

Responsibilities of this stage:
- key every record by its normalized location id
- keep exactly one record per key, preferring the most complete one
- report one merge decision per incoming record
- avoid persistence lookups (the caller hands in the persisted rows)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from listingsync.domain.completeness import DEFAULT_WEIGHTS, completeness_score
from listingsync.domain.errors import MalformedIdentifierError
from listingsync.domain.identity import normalize_location_id
from listingsync.domain.model import Location, MergeReason

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from listingsync.domain.completeness import CompletenessWeights

log = getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class MergeDecision:
    """Outcome for one incoming record."""

    normalized_id: str
    reason: MergeReason
    incoming_score: int
    existing_score: int | None = None

    @property
    def replaced(self) -> bool:
        return self.reason in {
            MergeReason.INSERTED,
            MergeReason.REPLACED_HIGHER_SCORE,
            MergeReason.REPLACED_NEWER,
        }


@dataclass(slots=True)
class DeduplicationResult:
    """Surviving record per normalized id plus the decisions that produced it.

    ``survivors`` maps each key to the record whose content should be stored.
    When a survivor came from ``incoming`` but a persisted row already exists,
    ``persisted_targets`` names that row so the caller can absorb the content
    into it. Incoming records whose id cannot be normalized are listed in
    ``rejected`` and take no part in the merge.
    """

    survivors: dict[str, Location] = field(default_factory=dict[str, Location])
    decisions: list[MergeDecision] = field(default_factory=list[MergeDecision])
    persisted_targets: dict[str, Location] = field(default_factory=dict[str, Location])
    rejected: list[str] = field(default_factory=list[str])

    @property
    def locations(self) -> list[Location]:
        return list(self.survivors.values())

    def changed(self) -> list[Location]:
        """Survivors whose content differs from the persisted row (or that are new)."""

        return [
            survivor
            for key, survivor in self.survivors.items()
            if self.persisted_targets.get(key) is not survivor
        ]

    def decision_counts(self) -> dict[MergeReason, int]:
        counts = dict.fromkeys(MergeReason, 0)
        for decision in self.decisions:
            counts[decision.reason] += 1
        return counts


def _timestamp(location: Location) -> datetime:
    value = location.updated_at
    if value is None:
        return _OLDEST
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def rescore(location: Location, *, weights: CompletenessWeights = DEFAULT_WEIGHTS) -> Location:
    """Recompute the derived fields of ``location`` in place."""

    location.normalized_id = normalize_location_id(location.external_id)
    location.completeness_score = completeness_score(
        location.fields, location.payload, weights=weights
    )
    return location


def choose(existing: Location, incoming: Location) -> MergeReason:
    """Pick between two scored records that share a normalized id."""

    if incoming.completeness_score > existing.completeness_score:
        return MergeReason.REPLACED_HIGHER_SCORE
    if incoming.completeness_score < existing.completeness_score:
        return MergeReason.KEPT_EXISTING
    if _timestamp(incoming) > _timestamp(existing):
        return MergeReason.REPLACED_NEWER
    return MergeReason.KEPT_EXISTING


def deduplicate_locations(
    incoming: Iterable[Location],
    persisted: Iterable[Location] = (),
    *,
    weights: CompletenessWeights = DEFAULT_WEIGHTS,
) -> DeduplicationResult:
    """Collapse ``incoming`` onto ``persisted`` so every normalized id survives once.

    Conflicts are resolved, never raised. Running the result back through this
    function produces the same survivors.
    """

    result = DeduplicationResult()
    seen_ids: set[UUID] = set()
    for row in persisted:
        rescore(row, weights=weights)
        current = result.survivors.get(row.normalized_id)
        if current is None or choose(current, row) is not MergeReason.KEPT_EXISTING:
            result.survivors[row.normalized_id] = row
            result.persisted_targets[row.normalized_id] = row
        seen_ids.add(row.id)

    for record in incoming:
        if record.id in seen_ids:
            # Same object handed in twice; it already competes as itself.
            continue
        seen_ids.add(record.id)
        try:
            rescore(record, weights=weights)
        except MalformedIdentifierError:
            log.warning("Skipping location with malformed id %r", record.external_id)
            result.rejected.append(record.external_id)
            continue
        key = record.normalized_id
        current = result.survivors.get(key)
        if current is None:
            result.survivors[key] = record
            result.decisions.append(
                MergeDecision(key, MergeReason.INSERTED, record.completeness_score)
            )
            continue
        reason = choose(current, record)
        result.decisions.append(
            MergeDecision(key, reason, record.completeness_score, current.completeness_score)
        )
        if reason is not MergeReason.KEPT_EXISTING:
            log.debug(
                "Location %s: %s (%s -> %s)",
                key,
                reason.value,
                current.completeness_score,
                record.completeness_score,
            )
            result.survivors[key] = record
    return result


def apply_to_persisted(result: DeduplicationResult) -> list[Location]:
    """Fold incoming winners into their persisted rows; return rows to add."""

    new_rows: list[Location] = []
    for key, survivor in result.survivors.items():
        target = result.persisted_targets.get(key)
        if target is None:
            new_rows.append(survivor)
        elif target is not survivor:
            target.absorb(survivor)
            result.survivors[key] = target
    return new_rows


__all__ = [
    "DeduplicationResult",
    "MergeDecision",
    "apply_to_persisted",
    "choose",
    "deduplicate_locations",
    "rescore",
]
