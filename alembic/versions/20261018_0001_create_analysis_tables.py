"""create analysis tables and seed scoring weights

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")

DEFAULT_WEIGHTS = (
    ("weights.technical", "30", "Technical foundation weight"),
    ("weights.content", "25", "Content and structure weight"),
    ("weights.structured_data", "10", "Structured data weight"),
    ("weights.performance", "25", "Performance and CWV weight"),
    ("weights.social", "10", "Social markup weight"),
)


def upgrade() -> None:
    op.create_table(
        "analysis_tasks",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, comment="queued, running, done, failed"),
        sa.Column("requested_url", sa.Text(), nullable=False),
        sa.Column("final_url", sa.Text(), nullable=True),
        sa.Column("overall_score", sa.Integer(), nullable=True),
        sa.Column("grade", sa.String(length=1), nullable=True),
        sa.Column("checks", JSON_TYPE, nullable=True, comment="Ordered check groups produced by the evaluator"),
        sa.Column("warnings", JSON_TYPE, nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("client_id", sa.String(length=255), nullable=False),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_analysis_tasks_status", "analysis_tasks", ["status"], unique=False)
    op.create_index("ix_analysis_tasks_created_at", "analysis_tasks", ["created_at"], unique=False)
    op.create_index(
        "ix_analysis_tasks_status_started_at",
        "analysis_tasks",
        ["status", "started_at"],
        unique=False,
    )

    op.create_table(
        "rate_limit_windows",
        sa.Column("client_id", sa.String(length=255), nullable=False),
        sa.Column("window_key", sa.String(length=13), nullable=False, comment="UTC hour bucket, YYYY-MM-DDTHH"),
        sa.Column("request_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("client_id", "window_key"),
    )
    op.create_index("ix_rate_limit_windows_created_at", "rate_limit_windows", ["created_at"], unique=False)

    op.create_table(
        "analysis_cache",
        sa.Column("fingerprint", sa.String(length=64), nullable=False, comment="sha256 hex of the normalized URL"),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("task_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("cached_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("fingerprint"),
    )
    op.create_index("ix_analysis_cache_cached_at", "analysis_cache", ["cached_at"], unique=False)

    settings_table = op.create_table(
        "settings",
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )
    op.bulk_insert(
        settings_table,
        [
            {"key": key, "value": value, "description": description}
            for key, value, description in DEFAULT_WEIGHTS
        ],
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_index("ix_analysis_cache_cached_at", table_name="analysis_cache")
    op.drop_table("analysis_cache")
    op.drop_index("ix_rate_limit_windows_created_at", table_name="rate_limit_windows")
    op.drop_table("rate_limit_windows")
    op.drop_index("ix_analysis_tasks_status_started_at", table_name="analysis_tasks")
    op.drop_index("ix_analysis_tasks_created_at", table_name="analysis_tasks")
    op.drop_index("ix_analysis_tasks_status", table_name="analysis_tasks")
    op.drop_table("analysis_tasks")
