"""add core web vitals payload to analysis tasks

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 15:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    with op.batch_alter_table("analysis_tasks") as batch_op:
        batch_op.add_column(
            sa.Column(
                "cwv",
                JSON_TYPE,
                nullable=True,
                comment="Core Web Vitals reported by the fetcher",
            )
        )


def downgrade() -> None:
    with op.batch_alter_table("analysis_tasks") as batch_op:
        batch_op.drop_column("cwv")
