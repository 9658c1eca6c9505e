"""Initial schema — Wellspring personalization tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. user_personalization ─────────────────────────────────────
    op.create_table(
        "user_personalization",
        sa.Column("user_id", sa.String, primary_key=True),
        sa.Column(
            "document",
            postgresql.JSONB,
            nullable=False,
            comment="PersonalizationProfile, snake_case JSON",
        ),
        sa.Column("schema_version", sa.Integer, nullable=False),
        sa.Column(
            "revision",
            sa.Integer,
            server_default="1",
            nullable=False,
            comment="Bumped on every write",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── 2. session_summaries ────────────────────────────────────────
    op.create_table(
        "session_summaries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String, nullable=False),
        sa.Column("session_id", sa.String, nullable=False),
        sa.Column("summary", sa.Text, server_default="", nullable=False),
        sa.Column(
            "key_topics",
            postgresql.JSONB,
            server_default="[]",
            nullable=False,
            comment="Array of topic strings",
        ),
        sa.Column(
            "emotional_state", sa.String, server_default="neutral", nullable=False
        ),
        sa.Column("user_needs", postgresql.JSONB, server_default="[]", nullable=False),
        sa.Column("important_context", sa.Text, server_default="", nullable=False),
        sa.Column(
            "perma_insights",
            postgresql.JSONB,
            server_default="{}",
            nullable=False,
            comment="dimension -> insight score",
        ),
        sa.Column("message_count", sa.Integer, server_default="0", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_session_summaries_user_created",
        "session_summaries",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_session_summaries_user_created", table_name="session_summaries"
    )
    op.drop_table("session_summaries")
    op.drop_table("user_personalization")
