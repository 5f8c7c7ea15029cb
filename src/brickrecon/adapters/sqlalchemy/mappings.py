"""SQLAlchemy table metadata for the RB/BL catalog mapping store."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import cast

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    false,
)


log = logging.getLogger(__name__)

metadata = MetaData()


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


class IntList(TypeDecorator[list[int]]):
    """List of ints stored as a JSON array in a text column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list[int] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps([int(item) for item in value])

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[int] | None:
        _ = dialect
        if value is None:
            return None
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            log.warning("Ignoring malformed int list column value: %r", value)
            return []
        if not isinstance(decoded, list):
            return []
        return [int(item) for item in cast(list[object], decoded) if isinstance(item, int)]


rb_colors_table = Table(
    "rb_colors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String(128), nullable=False),
    Column("bl_color_ids", IntList(), nullable=True),
)

rb_parts_table = Table(
    "rb_parts",
    metadata,
    Column("part_num", String(64), primary_key=True),
    Column("name", String(512), nullable=True),
    Column("bl_part_id", String(64), nullable=True),
)

bl_sets_table = Table(
    "bl_sets",
    metadata,
    Column("set_num", String(64), primary_key=True),
    Column("minifig_sync_status", String(16), nullable=True),
    Column("last_error", Text, nullable=True),
    Column("last_minifig_sync_at", UTCDateTime(), nullable=True),
)

bl_set_minifigs_table = Table(
    "bl_set_minifigs",
    metadata,
    Column("set_num", String(64), primary_key=True),
    Column("minifig_no", String(64), primary_key=True),
    Column("name", String(512), nullable=True),
    Column("quantity", Integer, nullable=False, default=1),
    Column("rb_fig_id", String(64), nullable=True),
    Column("last_refreshed_at", UTCDateTime(), nullable=True),
    Index("ix_bl_set_minifigs_rb_fig_id", "rb_fig_id"),
)

bricklink_minifig_mappings_table = Table(
    "bricklink_minifig_mappings",
    metadata,
    Column("rb_fig_id", String(64), primary_key=True),
    Column("bl_item_id", String(64), nullable=False),
    Column("confidence", Float, nullable=True),
    Column("source", String(64), nullable=True),
    Column("manually_approved", Boolean, nullable=False, default=False, server_default=false()),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_bricklink_minifig_mappings_bl_item_id", "bl_item_id"),
)

rb_set_minifigs_table = Table(
    "rb_set_minifigs",
    metadata,
    Column("set_num", String(64), primary_key=True),
    Column("fig_num", String(64), primary_key=True),
    Column("name", String(512), nullable=True),
    Column("quantity", Integer, nullable=False, default=1),
    Column("position", Integer, nullable=False, default=0),
)

rate_limits_table = Table(
    "rate_limits",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("count", Integer, nullable=False),
    Column("window_start_ms", BigInteger, nullable=False),
)
