"""Baseline schema: targets and heartbeats.

Revision ID: 001
Revises: None
Create Date: 2026-10-05
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
    # ── targets ──────────────────────────────────────────────────────────────
    op.create_table(
        "targets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="push"),
        sa.Column("url", sa.String(1000), nullable=True),
        sa.Column("push_token", sa.String(64), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("upside_down", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("resend_interval", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_targets_push_token", "targets", ["push_token"], unique=True)

    # ── heartbeats ───────────────────────────────────────────────────────────
    op.create_table(
        "heartbeats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "target_id",
            sa.Integer(),
            sa.ForeignKey("targets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("retries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ping", sa.Float(), nullable=True),
        sa.Column("msg", sa.Text(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("important", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("down_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_heartbeats_target_time", "heartbeats", ["target_id", "time"])


def downgrade() -> None:
    op.drop_index("ix_heartbeats_target_time", table_name="heartbeats")
    op.drop_table("heartbeats")
    op.drop_index("ix_targets_push_token", table_name="targets")
    op.drop_table("targets")
