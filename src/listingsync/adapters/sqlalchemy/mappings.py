"""SQLAlchemy mapping metadata for the listings domain model."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from listingsync.domain.model import (
    Location,
    LocationFields,
    ReplyState,
    Review,
    Sentiment,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class LabelSetType(TypeDecorator[set[str]]):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: set[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> set[str]:
        _ = dialect
        if value is None:
            return set()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return set()
        items = cast(list[Any], loaded)
        return {item for item in items if isinstance(item, str)}


class LocationFieldsType(TypeDecorator[LocationFields]):
    """Stores the typed card fields as one JSON object."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: LocationFields | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(asdict(value), sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> LocationFields:
        _ = dialect
        if value is None:
            return LocationFields()
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return LocationFields()
        data = cast(dict[str, Any], loaded)
        return LocationFields(
            name=data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
            website=data.get("website"),
            category=data.get("category"),
        )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

location_table = Table(
    "location",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("external_id", String, nullable=False),
    Column("normalized_id", String, nullable=False, unique=True),
    Column("fields", LocationFieldsType, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("completeness_score", Integer, nullable=False, default=0),
    Column("updated_at", UTCDateTime, nullable=True),
    Column("last_synced_at", UTCDateTime, nullable=True),
)

review_table = Table(
    "review",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("external_review_id", String, nullable=False, unique=True),
    Column(
        "location_id",
        UUIDColumnType,
        ForeignKey("location.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("reviewer_name", String, nullable=True),
    Column("rating", Integer, nullable=False),
    Column("text", Text, nullable=True),
    Column("sentiment", Enum(Sentiment, native_enum=False), nullable=False),
    Column("reply_state", Enum(ReplyState, native_enum=False), nullable=False),
    Column("reply_text", Text, nullable=True),
    Column("reply_timestamp", UTCDateTime, nullable=True),
    Column("review_timestamp", UTCDateTime, nullable=False),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("labels", LabelSetType, nullable=False),
    Column("suggested_reply", Text, nullable=True),
    Column("updated_at", UTCDateTime, nullable=True),
    Index("ix_review_feed_order", "review_timestamp", "id"),
    Index("ix_review_location_feed", "location_id", "review_timestamp"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Review, review_table)

    mapper_registry.map_imperatively(
        Location,
        location_table,
        properties={
            "_reviews": relationship(
                Review,
                cascade="all, delete-orphan",
                order_by=review_table.c.review_timestamp.desc(),
            ),
        },
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
