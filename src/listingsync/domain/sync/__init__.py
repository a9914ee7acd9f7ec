"""Per-entity synchronization with retry semantics."""

from __future__ import annotations

from .jobs import EntityRef, SyncJob, SyncJobRegistry, SyncOutcome
from .orchestrator import SyncOrchestrator, SyncSummary
from .policy import BackoffPolicy

__all__ = [
    "BackoffPolicy",
    "EntityRef",
    "SyncJob",
    "SyncJobRegistry",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncSummary",
]
