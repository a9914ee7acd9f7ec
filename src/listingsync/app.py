"""Application entry points: wiring adapters to the domain services."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from listingsync.adapters.gbp import GbpClient
from listingsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyListingUnitOfWork,
    is_started,
    startup,
)
from listingsync.config import ConfigurationError, get_gbp_config, get_sync_config
from listingsync.domain.completeness import CompletenessWeights
from listingsync.domain.errors import LocationNotFoundError
from listingsync.domain.identity import normalize_location_id
from listingsync.domain.model import EntityKind
from listingsync.domain.ports import DirectoryFetcher, ReplySubmitter, ReviewFetcher
from listingsync.domain.reviews import (
    BulkActionCoordinator,
    QueryCoalescer,
    ReviewLifecycleEngine,
    ReviewQueryEngine,
    SelectionBatch,
)
from listingsync.domain.sync import BackoffPolicy, EntityRef, SyncOrchestrator

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable, Hashable, Iterable
    from uuid import UUID

    from listingsync.config import GbpConfig, SyncConfig
    from listingsync.domain.model import BulkAction, Review, SyncStatus
    from listingsync.domain.ports import ListingUnitOfWork, ReplySuggester
    from listingsync.domain.reviews import BulkResult, FilterQuery, ReviewPage
    from listingsync.domain.sync import SyncJob, SyncSummary

type UnitOfWorkFactory = Callable[[], ListingUnitOfWork]

log = getLogger(__name__)


class ListingProvider(DirectoryFetcher, ReviewFetcher, ReplySubmitter, Protocol):
    """Everything the service needs from the directory provider."""

    async def aclose(self) -> None: ...


class ListingService:
    """Caller-facing API over sync, feed queries, replies and bulk actions."""

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        orchestrator: SyncOrchestrator,
        lifecycle: ReviewLifecycleEngine,
        query_engine: ReviewQueryEngine,
        bulk: BulkActionCoordinator,
        coalescer: QueryCoalescer | None = None,
        provider: ListingProvider | None = None,
        bulk_max_items: int = 50,
    ) -> None:
        self._uow_factory = uow_factory
        self.orchestrator = orchestrator
        self.lifecycle = lifecycle
        self.query_engine = query_engine
        self.bulk = bulk
        self._coalescer = coalescer
        self._provider = provider
        self._bulk_max_items = bulk_max_items

    # --- Read path -------------------------------------------------------------

    async def query(self, query: FilterQuery, *, session: Hashable | None = None) -> ReviewPage:
        if self._coalescer is None:
            return await self.query_engine.query(query)
        return await self._coalescer.run(query, session=session)

    # --- Sync ------------------------------------------------------------------

    def request_sync(self, ref: EntityRef) -> SyncJob:
        return self.orchestrator.request_sync(ref)

    def sync_status(self, ref: EntityRef) -> SyncStatus:
        return self.orchestrator.status(ref)

    async def sync_all(
        self, refs: Iterable[EntityRef] | None = None, *, kind: EntityKind = EntityKind.LOCATION
    ) -> SyncSummary:
        return await self.orchestrator.sync_all(refs, kind=kind)

    # --- Write path ------------------------------------------------------------

    def select(
        self,
        review_ids: Iterable[UUID],
        action: BulkAction,
        *,
        label: str | None = None,
        reply_text: str | None = None,
    ) -> SelectionBatch:
        return SelectionBatch.create(
            review_ids,
            action,
            label=label,
            reply_text=reply_text,
            max_items=self._bulk_max_items,
            reply_max_length=self.lifecycle.reply_max_length,
        )

    async def submit_bulk_action(
        self, batch: SelectionBatch, *, cancel_event: asyncio.Event | None = None
    ) -> BulkResult:
        return await self.bulk.submit(batch, cancel_event=cancel_event)

    async def reply_to_review(self, review_id: UUID, text: str) -> Review:
        return await self.lifecycle.reply_to_review(review_id, text)

    async def update_reply(self, review_id: UUID, text: str) -> Review:
        return await self.lifecycle.update_reply(review_id, text)

    async def delete_reply(self, review_id: UUID) -> Review:
        return await self.lifecycle.delete_reply(review_id)

    def remove_location(self, location_id: str) -> None:
        """Delete a location and, through the cascade, all of its reviews."""

        normalized_id = normalize_location_id(location_id)
        for kind in (EntityKind.LOCATION, EntityKind.REVIEWS):
            self.orchestrator.cancel(EntityRef(kind, normalized_id))
        with self._uow_factory() as uow:
            location = uow.repositories.locations.get_by_normalized_id(normalized_id)
            if location is None:
                raise LocationNotFoundError(normalized_id)
            uow.repositories.locations.remove(location)
            uow.commit()
        self.query_engine.record_mutation()
        log.info("Removed location %s", normalized_id)

    async def shutdown(self) -> None:
        await self.orchestrator.aclose()
        if self._provider is not None:
            await self._provider.aclose()


def completeness_weights(sync_config: SyncConfig) -> CompletenessWeights:
    try:
        return CompletenessWeights.from_overrides(sync_config.completeness_weights)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def build_listing_service(
    *,
    provider: ListingProvider | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    suggester: ReplySuggester | None = None,
    gbp_config: GbpConfig | None = None,
    sync_config: SyncConfig | None = None,
    database_uri: str | None = None,
    quiet_period_seconds: float | None = None,
) -> ListingService:
    """Assemble a :class:`ListingService` from configuration and adapters."""

    effective_sync = sync_config or get_sync_config()
    if unit_of_work_factory is None:
        if not is_started():
            startup(database_uri=database_uri)
        unit_of_work_factory = SqlAlchemyListingUnitOfWork
    effective_provider = provider or GbpClient(config=gbp_config or get_gbp_config())

    lifecycle = ReviewLifecycleEngine(
        unit_of_work_factory,
        effective_provider,
        reply_max_length=effective_sync.reply_max_length,
        call_timeout_seconds=effective_sync.call_timeout_seconds,
    )
    query_engine = ReviewQueryEngine(unit_of_work_factory)
    lifecycle.add_listener(query_engine.record_mutation)

    orchestrator = SyncOrchestrator(
        unit_of_work_factory,
        effective_provider,
        effective_provider,
        lifecycle,
        policy=BackoffPolicy(
            max_attempts=effective_sync.max_attempts,
            base_delay_seconds=effective_sync.base_delay_seconds,
            max_delay_seconds=effective_sync.max_delay_seconds,
        ),
        call_timeout_seconds=effective_sync.call_timeout_seconds,
        max_concurrent=effective_sync.max_concurrent_syncs,
        mode=effective_sync.mode,
        weights=completeness_weights(effective_sync),
    )
    bulk = BulkActionCoordinator(
        unit_of_work_factory,
        lifecycle,
        suggester,
        worker_limit=effective_sync.bulk_workers,
    )
    coalescer = (
        QueryCoalescer(query_engine.query)
        if quiet_period_seconds is None
        else QueryCoalescer(query_engine.query, quiet_period_seconds=quiet_period_seconds)
    )
    log.info(
        "Listing service ready: mode=%s, workers=%d, max_attempts=%d",
        effective_sync.mode,
        effective_sync.bulk_workers,
        effective_sync.max_attempts,
    )
    return ListingService(
        uow_factory=unit_of_work_factory,
        orchestrator=orchestrator,
        lifecycle=lifecycle,
        query_engine=query_engine,
        bulk=bulk,
        coalescer=coalescer,
        provider=effective_provider,
        bulk_max_items=effective_sync.bulk_max_items,
    )


__all__ = ["ListingProvider", "ListingService", "build_listing_service"]
