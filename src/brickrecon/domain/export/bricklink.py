"""BrickLink wanted-list CSV.

Rows carry a precomputed identity in the normal path. Exports built from rows
without one (older caches) go through the async variant, which asks a
``BrickLinkMappingLookup`` per row before giving up on it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from brickrecon.domain.identity import MINIFIG_PART_PREFIX, RowType
from brickrecon.domain.ports.bricklink import BrickLinkItemRef, ItemType
from brickrecon.domain.resolution import load_color_maps
from brickrecon.domain.validation import strip_part_suffix

from .csv import CsvCell, to_csv

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from brickrecon.common.cache import LRUCache
    from brickrecon.domain.ports.bricklink import BrickLinkMappingLookup
    from brickrecon.domain.ports.catalog import CatalogReader, ColorMaps
    from brickrecon.domain.rows import MissingRow

log = getLogger(__name__)

HEADERS: Final[tuple[str, ...]] = (
    "Item Type",
    "Item No",
    "Color",
    "Quantity",
    "Condition",
    "Description",
)


class Condition(StrEnum):
    NEW = "N"
    USED = "U"


@dataclass(frozen=True, slots=True)
class BrickLinkOptions:
    """``wanted_list_name`` goes into ``Description`` for importers without a list field."""

    wanted_list_name: str = ""
    condition: Condition = Condition.USED


@dataclass(slots=True)
class BrickLinkExportResult:
    csv: str
    unmapped: list[MissingRow] = field(default_factory=list["MissingRow"])
    exported_minifig_ids: list[str] = field(default_factory=list[str])


class _WantedList:
    def __init__(self, options: BrickLinkOptions) -> None:
        self._options = options
        self.body: list[tuple[CsvCell, ...]] = []
        self.unmapped: list[MissingRow] = []
        self.exported_minifig_ids: list[str] = []

    def add_minifig(self, row: MissingRow, bl_minifig_id: str) -> None:
        self.exported_minifig_ids.append(bl_minifig_id)
        self._line(ItemType.MINIFIG, bl_minifig_id, 0, row.quantity_missing)

    def add_part(self, row: MissingRow, bl_part_id: str, bl_color_id: int) -> None:
        self._line(ItemType.PART, bl_part_id, bl_color_id, row.quantity_missing)

    def add_identity(self, row: MissingRow) -> bool:
        identity = row.identity
        if identity is None:
            return False
        if identity.row_type is RowType.MINIFIG_PARENT and identity.bl_minifig_id:
            self.add_minifig(row, identity.bl_minifig_id)
            return True
        if identity.bl_part_id is not None and identity.bl_color_id is not None:
            self.add_part(row, identity.bl_part_id, identity.bl_color_id)
            return True
        return False

    def result(self) -> BrickLinkExportResult:
        return BrickLinkExportResult(
            csv=to_csv(HEADERS, self.body, include_bom=True),
            unmapped=self.unmapped,
            exported_minifig_ids=self.exported_minifig_ids,
        )

    def _line(self, item_type: ItemType, item_no: str, color: int, quantity: int) -> None:
        self.body.append(
            (
                item_type.value,
                item_no,
                color,
                quantity,
                self._options.condition.value,
                self._options.wanted_list_name,
            )
        )


def generate_bricklink_csv(
    rows: Sequence[MissingRow],
    options: BrickLinkOptions | None = None,
) -> BrickLinkExportResult:
    """Minifig parents with a BL id become ``M`` lines, fully mapped parts ``P`` lines.

    Everything else lands in ``unmapped``.
    """

    wanted = _WantedList(options or BrickLinkOptions())
    for row in rows:
        if row.quantity_missing <= 0:
            continue
        if not wanted.add_identity(row):
            wanted.unmapped.append(row)
    return wanted.result()


async def generate_bricklink_csv_with_fallback(
    rows: Sequence[MissingRow],
    options: BrickLinkOptions | None,
    lookup: BrickLinkMappingLookup,
) -> BrickLinkExportResult:
    """Like ``generate_bricklink_csv``; rows without an identity are looked up one by one."""

    wanted = _WantedList(options or BrickLinkOptions())
    for row in rows:
        if row.quantity_missing <= 0:
            continue
        if row.identity is not None:
            if not wanted.add_identity(row):
                wanted.unmapped.append(row)
            continue

        try:
            ref = await lookup(row.part_id, row.color_id)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "BrickLink mapping lookup failed for part=%s color=%s: %s",
                row.part_id,
                row.color_id,
                exc,
            )
            ref = None

        if ref is None:
            wanted.unmapped.append(row)
        elif ref.item_type is ItemType.MINIFIG:
            wanted.add_minifig(row, ref.item_no)
        elif ref.color_id is not None:
            wanted.add_part(row, ref.item_no, ref.color_id)
        else:
            wanted.unmapped.append(row)
    return wanted.result()


type MinifigIdLookup = Callable[[str], Awaitable[str | None]]


class CatalogFallbackMapper:
    """Per-row RB -> BL mapping backed by the catalog store.

    ``fig:`` rows map to a minifig item (through ``minifig_lookup`` when given).
    Parts need a BL color; the part id is the stored mapping, then the stored
    mapping of the suffix-stripped id, then the id itself.
    """

    def __init__(
        self,
        reader: CatalogReader,
        *,
        color_cache: LRUCache[str, ColorMaps] | None = None,
        part_cache: LRUCache[str, str | None] | None = None,
        minifig_lookup: MinifigIdLookup | None = None,
    ) -> None:
        self._reader = reader
        self._color_cache = color_cache
        self._part_cache = part_cache
        self._minifig_lookup = minifig_lookup
        self._color_maps: ColorMaps | None = None

    async def __call__(self, part_id: str, color_id: int) -> BrickLinkItemRef | None:
        if part_id.startswith(MINIFIG_PART_PREFIX):
            fig_id = part_id.removeprefix(MINIFIG_PART_PREFIX)
            bl_minifig_id = None
            if self._minifig_lookup is not None:
                bl_minifig_id = await self._minifig_lookup(fig_id)
            return BrickLinkItemRef(item_type=ItemType.MINIFIG, item_no=bl_minifig_id or fig_id)

        color_maps = await self._load_color_maps()
        bl_color_id = color_maps.rb_to_bl.get(color_id)
        if bl_color_id is None:
            log.debug("No BrickLink color for part=%s color=%s", part_id, color_id)
            return None

        bl_part_id = await self._part_mapping(part_id) or part_id
        return BrickLinkItemRef(item_type=ItemType.PART, item_no=bl_part_id, color_id=bl_color_id)

    async def _load_color_maps(self) -> ColorMaps:
        if self._color_maps is None:
            self._color_maps = await asyncio.to_thread(
                load_color_maps, self._reader, cache=self._color_cache
            )
        return self._color_maps

    async def _part_mapping(self, part_id: str) -> str | None:
        if self._part_cache is not None:
            entry = self._part_cache.get_entry(part_id)
            if entry is not None:
                return entry.value

        mapped = await self._stored_bl_part_id(part_id)
        if mapped is None:
            base_id = strip_part_suffix(part_id)
            if base_id is not None:
                mapped = await self._stored_bl_part_id(base_id)
                if mapped is not None:
                    log.debug("Stripped suffix for part %s -> %s", part_id, base_id)
                    if self._part_cache is not None:
                        self._part_cache.set(base_id, mapped)

        if self._part_cache is not None:
            self._part_cache.set(part_id, mapped)
        return mapped

    async def _stored_bl_part_id(self, part_id: str) -> str | None:
        try:
            mapped = await asyncio.to_thread(self._reader.get_bl_part_id, part_id)
        except Exception as exc:  # noqa: BLE001
            log.error("Stored BrickLink id lookup failed for part=%s: %s", part_id, exc)
            return None
        return mapped.strip() if mapped and mapped.strip() else None
