from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from brickrecon.adapters.sqlalchemy import (
    SqlAlchemyCatalogStore,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_adapter_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def _memory_engine() -> Engine:
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_store_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyCatalogStore()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = _memory_engine()
    engine_b = _memory_engine()

    startup(engine=engine_a)
    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_startup_migrates_schema() -> None:
    engine = _memory_engine()

    startup(engine=engine)

    tables = set(inspect(engine).get_table_names())
    assert {
        "rb_colors",
        "rb_parts",
        "bl_sets",
        "bl_set_minifigs",
        "bricklink_minifig_mappings",
        "rb_set_minifigs",
        "rate_limits",
        "alembic_version",
    } <= tables


def test_migrations_are_idempotent(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    assert "rb_parts" in inspect(sqlite_engine).get_table_names()
