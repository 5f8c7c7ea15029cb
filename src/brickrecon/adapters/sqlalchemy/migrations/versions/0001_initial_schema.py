"""Initial catalog mapping schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rb_colors",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("bl_color_ids", sa.Text(), nullable=True),
    )
    op.create_table(
        "rb_parts",
        sa.Column("part_num", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(512), nullable=True),
        sa.Column("bl_part_id", sa.String(64), nullable=True),
    )
    op.create_table(
        "bl_sets",
        sa.Column("set_num", sa.String(64), primary_key=True),
        sa.Column("minifig_sync_status", sa.String(16), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_minifig_sync_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "bl_set_minifigs",
        sa.Column("set_num", sa.String(64), primary_key=True),
        sa.Column("minifig_no", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(512), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("rb_fig_id", sa.String(64), nullable=True),
        sa.Column("last_refreshed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bl_set_minifigs_rb_fig_id", "bl_set_minifigs", ["rb_fig_id"])
    op.create_table(
        "bricklink_minifig_mappings",
        sa.Column("rb_fig_id", sa.String(64), primary_key=True),
        sa.Column("bl_item_id", sa.String(64), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("source", sa.String(64), nullable=True),
        sa.Column(
            "manually_approved", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_bricklink_minifig_mappings_bl_item_id",
        "bricklink_minifig_mappings",
        ["bl_item_id"],
    )
    op.create_table(
        "rb_set_minifigs",
        sa.Column("set_num", sa.String(64), primary_key=True),
        sa.Column("fig_num", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(512), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_table(
        "rate_limits",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("window_start_ms", sa.BigInteger(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("rate_limits")
    op.drop_table("rb_set_minifigs")
    op.drop_index(
        "ix_bricklink_minifig_mappings_bl_item_id", table_name="bricklink_minifig_mappings"
    )
    op.drop_table("bricklink_minifig_mappings")
    op.drop_index("ix_bl_set_minifigs_rb_fig_id", table_name="bl_set_minifigs")
    op.drop_table("bl_set_minifigs")
    op.drop_table("bl_sets")
    op.drop_table("rb_parts")
    op.drop_table("rb_colors")
