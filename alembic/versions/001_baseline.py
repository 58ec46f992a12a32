"""Baseline schema: the durable event log table.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "stream_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("stream_id", sa.String(255), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("data_json", sa.Text(), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("stream_id", "position", name="uq_stream_position"),
    )
    op.create_index("ix_stream_events_stream_id", "stream_events", ["stream_id"])


def downgrade() -> None:
    op.drop_index("ix_stream_events_stream_id", table_name="stream_events")
    op.drop_table("stream_events")
