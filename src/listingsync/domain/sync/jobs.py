"""Per-entity sync jobs and the registry that owns them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from listingsync.domain.model import EntityKind, SyncStatus

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class EntityRef:
    """What to synchronize: an account, one location, or a location's reviews."""

    kind: EntityKind
    key: str

    @classmethod
    def account(cls, account_id: str) -> EntityRef:
        return cls(EntityKind.ACCOUNT, account_id)

    @classmethod
    def location(cls, normalized_id: str) -> EntityRef:
        return cls(EntityKind.LOCATION, normalized_id)

    @classmethod
    def reviews(cls, normalized_id: str) -> EntityRef:
        return cls(EntityKind.REVIEWS, normalized_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.key}"


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """What a successful job did."""

    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    kept: int = 0
    pages: int = 0


@dataclass(eq=False, slots=True)
class SyncJob:
    entity: EntityRef
    status: SyncStatus = SyncStatus.IDLE
    attempt: int = 0
    last_error: BaseException | None = None
    next_retry_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    outcome: SyncOutcome | None = None
    task: asyncio.Task[None] | None = field(default=None, repr=False)
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()

    @property
    def succeeded(self) -> bool:
        return self.status is SyncStatus.SUCCEEDED

    def mark_done(self) -> None:
        self._done.set()

    async def wait(self) -> SyncJob:
        """Block until the job reaches a terminal state."""

        await self._done.wait()
        return self

    def cancel(self) -> bool:
        if self.task is None or self.task.done():
            return False
        return self.task.cancel()


class SyncJobRegistry:
    """One job per entity.

    Succeeded jobs are forgotten, so the entity reports ``idle`` again. A failed
    job stays visible until a newer request for the same entity replaces it.
    """

    def __init__(self) -> None:
        self._jobs: dict[EntityRef, SyncJob] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, ref: object) -> bool:
        return ref in self._jobs

    def get(self, ref: EntityRef) -> SyncJob | None:
        return self._jobs.get(ref)

    def in_flight(self, ref: EntityRef) -> SyncJob | None:
        job = self._jobs.get(ref)
        if job is not None and job.in_flight:
            return job
        return None

    def replace(self, job: SyncJob) -> SyncJob:
        self._jobs[job.entity] = job
        return job

    def forget(self, job: SyncJob) -> None:
        if self._jobs.get(job.entity) is job:
            del self._jobs[job.entity]

    def status(self, ref: EntityRef) -> SyncStatus:
        job = self._jobs.get(ref)
        return SyncStatus.IDLE if job is None else job.status

    def jobs(self) -> list[SyncJob]:
        return list(self._jobs.values())


__all__ = ["EntityRef", "SyncJob", "SyncJobRegistry", "SyncOutcome"]
