"""Create location and review tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from listingsync.adapters.sqlalchemy.mappings import (
    LabelSetType,
    LocationFieldsType,
    UTCDateTime,
)

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_REPLY_STATES = ("NEW", "PENDING_REPLY", "REPLIED")
_SENTIMENTS = ("POSITIVE", "NEUTRAL", "NEGATIVE", "UNSET")


def upgrade() -> None:
    op.create_table(
        "location",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("normalized_id", sa.String(), nullable=False),
        sa.Column("fields", LocationFieldsType(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("completeness_score", sa.Integer(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.Column("last_synced_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_location"),
        sa.UniqueConstraint("normalized_id", name="uq_location_normalized_id"),
    )
    op.create_table(
        "review",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("external_review_id", sa.String(), nullable=False),
        sa.Column("location_id", sa.Uuid(), nullable=False),
        sa.Column("reviewer_name", sa.String(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column(
            "sentiment", sa.Enum(*_SENTIMENTS, name="sentiment", native_enum=False), nullable=False
        ),
        sa.Column(
            "reply_state",
            sa.Enum(*_REPLY_STATES, name="replystate", native_enum=False),
            nullable=False,
        ),
        sa.Column("reply_text", sa.Text(), nullable=True),
        sa.Column("reply_timestamp", UTCDateTime(), nullable=True),
        sa.Column("review_timestamp", UTCDateTime(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("labels", LabelSetType(), nullable=False),
        sa.Column("suggested_reply", sa.Text(), nullable=True),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["location.id"],
            name="fk_review_location_id_location",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_review"),
        sa.UniqueConstraint("external_review_id", name="uq_review_external_review_id"),
    )
    op.create_index("ix_review_feed_order", "review", ["review_timestamp", "id"])
    op.create_index("ix_review_location_feed", "review", ["location_id", "review_timestamp"])


def downgrade() -> None:
    op.drop_index("ix_review_location_feed", table_name="review")
    op.drop_index("ix_review_feed_order", table_name="review")
    op.drop_table("review")
    op.drop_table("location")
