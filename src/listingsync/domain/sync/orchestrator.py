"""Asynchronous, per-entity synchronization against the directory provider.

Each :class:`EntityRef` has at most one job in flight; a second request for the
same entity joins the running job instead of starting another one. Transient
failures are retried with exponential backoff, everything else fails the job
immediately. Every provider call runs under a timeout and a semaphore bounds how
many entities sync at the same time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from listingsync.domain.completeness import DEFAULT_WEIGHTS
from listingsync.domain.errors import (
    ListingSyncError,
    LocationNotFoundError,
    MalformedIdentifierError,
    OperationCancelledError,
    ProviderTimeoutError,
)
from listingsync.domain.identity import normalize_location_id
from listingsync.domain.model import EntityKind, MergeReason, SyncStatus
from listingsync.domain.reconciliation import apply_to_persisted, deduplicate_locations

from .jobs import EntityRef, SyncJob, SyncJobRegistry, SyncOutcome
from .policy import BackoffPolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from listingsync.domain.completeness import CompletenessWeights
    from listingsync.domain.model import Location
    from listingsync.domain.ports import DirectoryFetcher, ListingUnitOfWork, ReviewFetcher
    from listingsync.domain.reviews.lifecycle import ReviewLifecycleEngine

log = getLogger(__name__)

type SyncMode = Literal["full", "incremental"]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class SyncSummary:
    """Result of :meth:`SyncOrchestrator.sync_all`."""

    total: int = 0
    succeeded: list[EntityRef] = field(default_factory=list[EntityRef])
    failed: dict[EntityRef, BaseException | None] = field(
        default_factory=dict[EntityRef, "BaseException | None"]
    )

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def all_succeeded(self) -> bool:
        return self.success_count == self.total


class SyncOrchestrator:
    def __init__(
        self,
        uow_factory: Callable[[], ListingUnitOfWork],
        directory: DirectoryFetcher,
        reviews: ReviewFetcher,
        lifecycle: ReviewLifecycleEngine,
        *,
        policy: BackoffPolicy | None = None,
        call_timeout_seconds: float = 30.0,
        max_concurrent: int = 4,
        mode: SyncMode = "full",
        weights: CompletenessWeights = DEFAULT_WEIGHTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._directory = directory
        self._reviews = reviews
        self._lifecycle = lifecycle
        self._policy = policy or BackoffPolicy()
        self._call_timeout = call_timeout_seconds
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._mode: SyncMode = mode
        self._weights = weights
        self._sleep = sleep
        self._clock = clock
        self._registry = SyncJobRegistry()

    @property
    def registry(self) -> SyncJobRegistry:
        return self._registry

    # --- Public API ------------------------------------------------------------

    def request_sync(self, ref: EntityRef) -> SyncJob:
        """Start syncing ``ref`` or return the job already running for it.

        Must be called from inside a running event loop.
        """

        running = self._registry.in_flight(ref)
        if running is not None:
            log.debug("Coalescing sync request for %s onto attempt %d", ref, running.attempt)
            return running
        job = self._registry.replace(SyncJob(entity=ref))
        job.task = asyncio.create_task(self._run(job), name=f"sync {ref}")
        # A task cancelled before its first step never enters _run, so settle here.
        job.task.add_done_callback(lambda task: self._settle(job, task))
        return job

    def status(self, ref: EntityRef) -> SyncStatus:
        return self._registry.status(ref)

    def job_for(self, ref: EntityRef) -> SyncJob | None:
        return self._registry.get(ref)

    def snapshot(self) -> dict[EntityRef, SyncStatus]:
        return {job.entity: job.status for job in self._registry.jobs()}

    async def sync_all(
        self, refs: Iterable[EntityRef] | None = None, *, kind: EntityKind = EntityKind.LOCATION
    ) -> SyncSummary:
        """Sync every ref (default: every stored location) and wait for all of them."""

        targets = list(refs) if refs is not None else self._stored_refs(kind)
        jobs = [self.request_sync(ref) for ref in dict.fromkeys(targets)]
        await asyncio.gather(*(job.wait() for job in jobs))
        summary = SyncSummary(total=len(jobs))
        for job in jobs:
            if job.succeeded:
                summary.succeeded.append(job.entity)
            else:
                summary.failed[job.entity] = job.last_error
        log.info("Synced %d of %d entities", summary.success_count, summary.total)
        return summary

    def cancel(self, ref: EntityRef) -> bool:
        job = self._registry.in_flight(ref)
        return job.cancel() if job is not None else False

    def cancel_all(self) -> int:
        return sum(1 for job in self._registry.jobs() if job.cancel())

    async def aclose(self) -> None:
        """Cancel every running job and wait until all of them settled."""

        jobs = [job for job in self._registry.jobs() if job.in_flight]
        self.cancel_all()
        await asyncio.gather(*(job.wait() for job in jobs))

    # --- Job runner ------------------------------------------------------------

    async def _run(self, job: SyncJob) -> None:
        ref = job.entity
        while True:
            job.attempt += 1
            job.status = SyncStatus.SYNCING
            job.next_retry_at = None
            if job.started_at is None:
                job.started_at = self._clock()
            try:
                async with self._semaphore:
                    job.outcome = await self._execute(ref)
            except Exception as exc:  # noqa: BLE001
                job.last_error = exc
                job.status = SyncStatus.FAILED
                if not isinstance(exc, ListingSyncError):
                    log.exception("Unexpected error while syncing %s", ref)
                if not self._policy.should_retry(job.attempt, exc):
                    job.finished_at = self._clock()
                    log.warning("Sync of %s failed after %d attempt(s): %s", ref, job.attempt, exc)
                    return
                delay = self._policy.delay_for(job.attempt, exc)
                job.next_retry_at = self._clock() + timedelta(seconds=delay)
                log.info(
                    "Sync of %s failed (attempt %d): %s; retrying in %.2fs",
                    ref,
                    job.attempt,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                continue
            job.status = SyncStatus.SUCCEEDED
            job.last_error = None
            job.finished_at = self._clock()
            self._registry.forget(job)
            log.info("Synced %s: %s", ref, job.outcome)
            return

    def _settle(self, job: SyncJob, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            job.status = SyncStatus.FAILED
            job.last_error = OperationCancelledError(f"Sync of {job.entity} was cancelled")
            job.next_retry_at = None
            job.finished_at = self._clock()
            log.info("Sync of %s cancelled", job.entity)
        job.mark_done()

    async def _execute(self, ref: EntityRef) -> SyncOutcome:
        match ref.kind:
            case EntityKind.ACCOUNT:
                return await self._sync_account(ref.key)
            case EntityKind.LOCATION:
                return await self._sync_location(ref.key)
            case EntityKind.REVIEWS:
                return await self._sync_reviews(ref.key)

    async def _call[T](self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._call_timeout)
        except TimeoutError as exc:
            raise ProviderTimeoutError(
                f"Provider call exceeded {self._call_timeout:g}s"
            ) from exc

    # --- Entity kinds ----------------------------------------------------------

    async def _sync_account(self, account_id: str) -> SyncOutcome:
        incoming: list[Location] = []
        token: str | None = None
        pages = 0
        seen_tokens: set[str] = set()
        while True:
            page = await self._call(self._directory.list_locations(account_id, token))
            pages += 1
            incoming.extend(page.locations)
            token = page.next_page_token
            if not token or token in seen_tokens or self._mode == "incremental":
                break
            seen_tokens.add(token)
        return self._merge_locations(incoming, pages=pages)

    async def _sync_location(self, normalized_id: str) -> SyncOutcome:
        location = await self._call(self._directory.fetch_location(normalized_id))
        return self._merge_locations([location], pages=1)

    def _merge_locations(self, incoming: list[Location], *, pages: int) -> SyncOutcome:
        keys: set[str] = set()
        for record in incoming:
            try:
                keys.add(normalize_location_id(record.external_id))
            except MalformedIdentifierError:
                continue

        now = self._clock()
        with self._uow_factory() as uow:
            locations = uow.repositories.locations
            persisted = [
                row for key in sorted(keys) if (row := locations.get_by_normalized_id(key))
            ]
            result = deduplicate_locations(incoming, persisted, weights=self._weights)
            new_rows = apply_to_persisted(result)
            for row in new_rows:
                locations.add(row)
            for survivor in result.survivors.values():
                survivor.mark_synced(now)
            uow.commit()

        counts = result.decision_counts()
        replaced = counts[MergeReason.REPLACED_HIGHER_SCORE] + counts[MergeReason.REPLACED_NEWER]
        return SyncOutcome(
            fetched=len(incoming),
            inserted=len(new_rows),
            updated=replaced,
            kept=counts[MergeReason.KEPT_EXISTING],
            pages=pages,
        )

    async def _sync_reviews(self, normalized_id: str) -> SyncOutcome:
        with self._uow_factory() as uow:
            location = uow.repositories.locations.get_by_normalized_id(normalized_id)
            if location is None:
                raise LocationNotFoundError(normalized_id)
            external_id = location.external_id

        fetched = inserted = pages = 0
        token: str | None = None
        seen_tokens: set[str] = set()
        while True:
            page = await self._call(self._reviews.list_reviews(external_id, token))
            pages += 1
            with self._uow_factory() as uow:
                location = uow.repositories.locations.get_by_normalized_id(normalized_id)
                if location is None:
                    raise LocationNotFoundError(normalized_id)
                for review in page.reviews:
                    inserted += self._lifecycle.ingest(uow, location, review)
                uow.commit()
            fetched += len(page.reviews)
            self._lifecycle.notify()
            token = page.next_page_token
            if not token or token in seen_tokens or self._mode == "incremental":
                break
            seen_tokens.add(token)
        return SyncOutcome(
            fetched=fetched, inserted=inserted, updated=fetched - inserted, pages=pages
        )

    def _stored_refs(self, kind: EntityKind) -> list[EntityRef]:
        with self._uow_factory() as uow:
            keys = [row.normalized_id for row in uow.repositories.locations.list_all()]
        return [EntityRef(kind, key) for key in keys]


__all__ = ["SyncOrchestrator", "SyncSummary"]
