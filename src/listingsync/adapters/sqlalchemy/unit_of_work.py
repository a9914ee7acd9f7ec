"""SQLAlchemy-backed unit of work for locations and reviews."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from listingsync.adapters.sqlalchemy.mappings import start_mappers
from listingsync.adapters.sqlalchemy.migrations import upgrade_head
from listingsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyLocationRepository,
    SqlAlchemyReviewRepository,
)
from listingsync.config.storage import get_database_uri
from listingsync.domain.ports.unit_of_work import ListingRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "Listing storage not initialised. Call "
                "listingsync.adapters.sqlalchemy.startup() before opening a unit of work."
            )
        if self._session_factory is None:
            # Domain objects outlive the session: services hand them to callers after commit.
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: object) -> None:  # noqa: ANN401
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_uri: str) -> Engine:
    """Create an engine; sqlite connections enforce the review -> location cascade."""

    if not database_uri.startswith("sqlite"):
        return create_engine(database_uri, future=True)
    if ":memory:" in database_uri:
        engine = create_engine(
            database_uri,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_uri, future=True)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Map the domain, migrate the schema to head and bind the session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError("Listing storage already initialised. Pass force=True to reconfigure.")

    resolved_engine = engine or build_engine(database_uri or get_database_uri())
    start_mappers()
    upgrade_head(engine=resolved_engine)
    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyListingUnitOfWork:
    """One session around the location and review repositories.

    Leaving the block with an exception rolls back; leaving it normally without
    :meth:`commit` discards pending changes when the session closes.
    """

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None
        self._repositories: ListingRepositories | None = None

    def __enter__(self) -> SqlAlchemyListingUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work session already open")
        self._session = self.session_factory()
        self._repositories = ListingRepositories(
            locations=SqlAlchemyLocationRepository(self._session),
            reviews=SqlAlchemyReviewRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self._session = None
        self._repositories = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> ListingRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session


if TYPE_CHECKING:
    from listingsync.domain.ports.unit_of_work import ListingUnitOfWork

    _uow_check: ListingUnitOfWork = SqlAlchemyListingUnitOfWork()
