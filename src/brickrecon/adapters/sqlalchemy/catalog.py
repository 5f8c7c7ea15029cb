"""SQLAlchemy implementation of the catalog and minifig mapping ports."""

from __future__ import annotations

from datetime import UTC, datetime
from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING, Final

from sqlalchemy import func, insert, select, update

from brickrecon.domain.ports.catalog import ColorMaps
from brickrecon.domain.ports.minifigs import (
    MinifigSyncStatus,
    RebrickableSetMinifig,
    SetMinifigSnapshot,
)

from .engine import session_factory as default_session_factory
from .mappings import (
    bl_set_minifigs_table,
    bl_sets_table,
    bricklink_minifig_mappings_table,
    rb_colors_table,
    rb_parts_table,
    rb_set_minifigs_table,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from sqlalchemy.orm import Session, sessionmaker

    from brickrecon.domain.ports.bricklink import BrickLinkSetMinifig
    from brickrecon.domain.ports.minifigs import MinifigPair

log = getLogger(__name__)

# Bound parameters per IN (...) clause
IN_CLAUSE_CHUNK_SIZE: Final[int] = 500


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _normalize_fig_id(fig_id: str) -> str:
    return fig_id.strip().lower()


def _sync_status(value: str | None) -> MinifigSyncStatus | None:
    if value is None:
        return None
    try:
        return MinifigSyncStatus(value)
    except ValueError:
        log.warning("Unknown minifig sync status %r", value)
        return None


class SqlAlchemyCatalogStore:
    """Keyed reads and writes of the cross-catalog mapping tables.

    Every method runs in its own short session; one call is one round trip
    (or one per ``IN_CLAUSE_CHUNK_SIZE`` ids for batched reads).
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory: Callable[[], Session] = (
            session_factory or default_session_factory()
        )

    # Catalog reader / writer

    def load_color_maps(self) -> ColorMaps:
        stmt = select(rb_colors_table.c.id, rb_colors_table.c.bl_color_ids).order_by(
            rb_colors_table.c.id
        )
        rb_to_bl: dict[int, int] = {}
        bl_to_rb: dict[int, int] = {}
        with self._session_factory() as session:
            for rb_color_id, bl_color_ids in session.execute(stmt):
                if not bl_color_ids:
                    continue
                rb_to_bl[rb_color_id] = bl_color_ids[0]
                for bl_color_id in bl_color_ids:
                    bl_to_rb.setdefault(bl_color_id, rb_color_id)
        return ColorMaps(rb_to_bl=rb_to_bl, bl_to_rb=bl_to_rb)

    def load_part_mappings(self, part_ids: Iterable[str]) -> dict[str, str]:
        unique_ids = sorted({part_id for part_id in part_ids if part_id})
        mappings: dict[str, str] = {}
        if not unique_ids:
            return mappings
        with self._session_factory() as session:
            for chunk in batched(unique_ids, IN_CLAUSE_CHUNK_SIZE):
                stmt = select(rb_parts_table.c.part_num, rb_parts_table.c.bl_part_id).where(
                    rb_parts_table.c.part_num.in_(chunk),
                    rb_parts_table.c.bl_part_id.is_not(None),
                )
                for part_num, bl_part_id in session.execute(stmt):
                    if bl_part_id and bl_part_id.strip():
                        mappings[part_num] = bl_part_id.strip()
        return mappings

    def get_bl_part_id(self, rb_part_id: str) -> str | None:
        stmt = select(rb_parts_table.c.bl_part_id).where(rb_parts_table.c.part_num == rb_part_id)
        with self._session_factory() as session:
            return session.execute(stmt).scalar_one_or_none()

    def update_bl_part_id(self, rb_part_id: str, bl_part_id: str) -> bool:
        stmt = (
            update(rb_parts_table)
            .where(rb_parts_table.c.part_num == rb_part_id)
            .values(bl_part_id=bl_part_id)
        )
        with self._session_factory() as session, session.begin():
            result = session.execute(stmt)
        return bool(result.rowcount)

    # Minifig mapping store

    def fetch_set_minifig_mappings(
        self, set_number: str, fig_ids: Sequence[str]
    ) -> SetMinifigSnapshot:
        clean_ids = sorted({_normalize_fig_id(fig_id) for fig_id in fig_ids if fig_id})
        mappings: dict[str, str | None] = {}
        with self._session_factory() as session:
            status_value = session.execute(
                select(bl_sets_table.c.minifig_sync_status).where(
                    bl_sets_table.c.set_num == set_number
                )
            ).scalar_one_or_none()
            rb_fig_column = func.lower(bl_set_minifigs_table.c.rb_fig_id)
            for chunk in batched(clean_ids, IN_CLAUSE_CHUNK_SIZE):
                stmt = (
                    select(bl_set_minifigs_table.c.rb_fig_id, bl_set_minifigs_table.c.minifig_no)
                    .where(
                        bl_set_minifigs_table.c.set_num == set_number,
                        rb_fig_column.in_(chunk),
                    )
                    .order_by(bl_set_minifigs_table.c.minifig_no)
                )
                for rb_fig_id, minifig_no in session.execute(stmt):
                    mappings.setdefault(_normalize_fig_id(rb_fig_id), minifig_no)
        return SetMinifigSnapshot(mappings=mappings, sync_status=_sync_status(status_value))

    def fetch_global_minifig_mappings(self, fig_ids: Sequence[str]) -> dict[str, str]:
        clean_ids = sorted({_normalize_fig_id(fig_id) for fig_id in fig_ids if fig_id})
        found: dict[str, str] = {}
        if not clean_ids:
            return found
        explicit_column = func.lower(bricklink_minifig_mappings_table.c.rb_fig_id)
        per_set_column = func.lower(bl_set_minifigs_table.c.rb_fig_id)
        with self._session_factory() as session:
            for chunk in batched(clean_ids, IN_CLAUSE_CHUNK_SIZE):
                stmt = select(
                    bricklink_minifig_mappings_table.c.rb_fig_id,
                    bricklink_minifig_mappings_table.c.bl_item_id,
                ).where(explicit_column.in_(chunk))
                for rb_fig_id, bl_item_id in session.execute(stmt):
                    found[_normalize_fig_id(rb_fig_id)] = bl_item_id

            remaining = [fig_id for fig_id in clean_ids if fig_id not in found]
            for chunk in batched(remaining, IN_CLAUSE_CHUNK_SIZE):
                stmt = (
                    select(bl_set_minifigs_table.c.rb_fig_id, bl_set_minifigs_table.c.minifig_no)
                    .where(per_set_column.in_(chunk))
                    .order_by(bl_set_minifigs_table.c.set_num, bl_set_minifigs_table.c.minifig_no)
                )
                for rb_fig_id, minifig_no in session.execute(stmt):
                    found.setdefault(_normalize_fig_id(rb_fig_id), minifig_no)
        return found

    def find_rebrickable_fig_id(self, bl_minifig_id: str) -> str | None:
        with self._session_factory() as session:
            explicit = session.execute(
                select(bricklink_minifig_mappings_table.c.rb_fig_id)
                .where(bricklink_minifig_mappings_table.c.bl_item_id == bl_minifig_id)
                .order_by(bricklink_minifig_mappings_table.c.rb_fig_id)
                .limit(1)
            ).scalar_one_or_none()
            if explicit is not None:
                return explicit
            return session.execute(
                select(bl_set_minifigs_table.c.rb_fig_id)
                .where(
                    bl_set_minifigs_table.c.minifig_no == bl_minifig_id,
                    bl_set_minifigs_table.c.rb_fig_id.is_not(None),
                )
                .order_by(bl_set_minifigs_table.c.set_num)
                .limit(1)
            ).scalar_one_or_none()

    # Set minifig sync store

    def get_set_sync_status(self, set_number: str) -> MinifigSyncStatus | None:
        stmt = select(bl_sets_table.c.minifig_sync_status).where(
            bl_sets_table.c.set_num == set_number
        )
        with self._session_factory() as session:
            return _sync_status(session.execute(stmt).scalar_one_or_none())

    def record_set_sync(
        self, set_number: str, status: MinifigSyncStatus, *, error: str | None = None
    ) -> None:
        values = {
            "minifig_sync_status": status.value,
            "last_error": error,
            "last_minifig_sync_at": _now(),
        }
        with self._session_factory() as session, session.begin():
            result = session.execute(
                update(bl_sets_table).where(bl_sets_table.c.set_num == set_number).values(**values)
            )
            if not result.rowcount:
                session.execute(insert(bl_sets_table).values(set_num=set_number, **values))

    def store_set_minifigs(
        self, set_number: str, minifigs: Sequence[BrickLinkSetMinifig]
    ) -> None:
        refreshed_at = _now()
        with self._session_factory() as session, session.begin():
            for minifig in minifigs:
                values = {
                    "name": minifig.name,
                    "quantity": minifig.quantity,
                    "last_refreshed_at": refreshed_at,
                }
                result = session.execute(
                    update(bl_set_minifigs_table)
                    .where(
                        bl_set_minifigs_table.c.set_num == set_number,
                        bl_set_minifigs_table.c.minifig_no == minifig.minifig_no,
                    )
                    .values(**values)
                )
                if not result.rowcount:
                    session.execute(
                        insert(bl_set_minifigs_table).values(
                            set_num=set_number, minifig_no=minifig.minifig_no, **values
                        )
                    )

    def load_rebrickable_set_minifigs(self, set_number: str) -> list[RebrickableSetMinifig]:
        stmt = (
            select(
                rb_set_minifigs_table.c.fig_num,
                rb_set_minifigs_table.c.name,
                rb_set_minifigs_table.c.quantity,
            )
            .where(rb_set_minifigs_table.c.set_num == set_number)
            .order_by(rb_set_minifigs_table.c.position, rb_set_minifigs_table.c.fig_num)
        )
        with self._session_factory() as session:
            return [
                RebrickableSetMinifig(fig_num=fig_num, name=name, quantity=quantity or 1)
                for fig_num, name, quantity in session.execute(stmt)
            ]

    def store_minifig_pairs(self, set_number: str, pairs: Sequence[MinifigPair]) -> int:
        """Link pairs on the set and upsert global mappings; return global rows written."""

        if not pairs:
            return 0
        updated_at = _now()
        written = 0
        with self._session_factory() as session, session.begin():
            approved = set(
                session.execute(
                    select(bricklink_minifig_mappings_table.c.rb_fig_id).where(
                        bricklink_minifig_mappings_table.c.rb_fig_id.in_(
                            [pair.rb_fig_id for pair in pairs]
                        ),
                        bricklink_minifig_mappings_table.c.manually_approved.is_(True),
                    )
                ).scalars()
            )
            for pair in pairs:
                session.execute(
                    update(bl_set_minifigs_table)
                    .where(
                        bl_set_minifigs_table.c.set_num == set_number,
                        bl_set_minifigs_table.c.minifig_no == pair.bl_item_id,
                    )
                    .values(rb_fig_id=pair.rb_fig_id, last_refreshed_at=updated_at)
                )
                if pair.rb_fig_id in approved:
                    log.debug("Keeping manually approved mapping for %s", pair.rb_fig_id)
                    continue
                values = {
                    "bl_item_id": pair.bl_item_id,
                    "confidence": pair.confidence,
                    "source": pair.source,
                    "updated_at": updated_at,
                }
                result = session.execute(
                    update(bricklink_minifig_mappings_table)
                    .where(bricklink_minifig_mappings_table.c.rb_fig_id == pair.rb_fig_id)
                    .values(**values)
                )
                if not result.rowcount:
                    session.execute(
                        insert(bricklink_minifig_mappings_table).values(
                            rb_fig_id=pair.rb_fig_id, manually_approved=False, **values
                        )
                    )
                written += 1
        return written
