"""SQLAlchemy adapter package for listingsync."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    location_table,
    mapper_registry,
    review_table,
    start_mappers,
)
from .repositories import SqlAlchemyLocationRepository, SqlAlchemyReviewRepository
from .unit_of_work import (
    SqlAlchemyListingUnitOfWork,
    StartupError,
    build_engine,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyListingUnitOfWork",
    "SqlAlchemyLocationRepository",
    "SqlAlchemyReviewRepository",
    "StartupError",
    "build_engine",
    "create_all_tables",
    "location_table",
    "mapper_registry",
    "review_table",
    "shutdown",
    "start_mappers",
    "startup",
]
