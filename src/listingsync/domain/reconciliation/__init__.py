"""Reconciliation of provider records against the local store."""

from __future__ import annotations

from .deduplicate import (
    DeduplicationResult,
    MergeDecision,
    apply_to_persisted,
    deduplicate_locations,
)

__all__ = [
    "DeduplicationResult",
    "MergeDecision",
    "apply_to_persisted",
    "deduplicate_locations",
]
