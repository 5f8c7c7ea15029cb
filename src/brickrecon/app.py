"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import dataclasses
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from brickrecon.adapters.bricklink import BrickLinkClient
from brickrecon.adapters.sqlalchemy import (
    SqlAlchemyCatalogStore,
    SqlAlchemyRateLimitBackend,
    is_started,
    startup,
)
from brickrecon.common.cache import LRUCache
from brickrecon.common.rate_limit import RateLimiter
from brickrecon.config.validation import ValidationConfig, get_validation_config
from brickrecon.domain.export import (
    BrickLinkOptions,
    CatalogFallbackMapper,
    RebrickableOptions,
    generate_bricklink_csv,
    generate_bricklink_csv_with_fallback,
    generate_pick_a_brick_csv,
    generate_rebrickable_csv,
)
from brickrecon.domain.identity import MINIFIG_PART_PREFIX, RowType
from brickrecon.domain.minifig_mapping import MinifigMapper, MinifigMappingResult, normalize_fig_id
from brickrecon.domain.minifig_sync import SetMinifigSynchronizer
from brickrecon.domain.resolution import load_resolution_context, resolve_part_identity
from brickrecon.domain.rows import InventoryRow
from brickrecon.domain.validation import (
    CachedPartExistenceCheck,
    PartValidator,
    ValidationRequest,
    ValidationResponse,
    handle_validation_request,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from brickrecon.domain.ports.bricklink import BrickLinkSetMinifig, ItemStatus
    from brickrecon.domain.ports.catalog import ColorMaps
    from brickrecon.domain.rows import MissingRow

log = getLogger(__name__)

COLOR_CACHE_SIZE: Final[int] = 4
MINIFIG_CACHE_SIZE: Final[int] = 10_000
PART_MAPPING_CACHE_SIZE: Final[int] = 10_000


class ExportFormat(StrEnum):
    REBRICKABLE = "rebrickable"
    BRICKLINK = "bricklink"
    PICK_A_BRICK = "pick-a-brick"


@dataclass(slots=True)
class ExportResult:
    csv: str
    unmapped: list[MissingRow] = field(default_factory=list["MissingRow"])
    exported_minifig_ids: list[str] = field(default_factory=list[str])


@dataclass(slots=True)
class AppServices:
    """Long-lived services shared by every request in the process.

    The BrickLink client (with its response cache) and the services built on it
    are created on first use and live until ``aclose``, which also drains
    pending self-heal writes. They are bound to the running event loop, so use
    and close them within one ``asyncio.run``.
    """

    store: SqlAlchemyCatalogStore
    limiter: RateLimiter
    validation: ValidationConfig
    color_cache: LRUCache[str, ColorMaps]
    existence_cache: LRUCache[str, ItemStatus]
    part_mapping_cache: LRUCache[str, str | None]
    minifig_cache: LRUCache[str, str | None]
    reverse_minifig_cache: LRUCache[str, str | None]
    bricklink_factory: Callable[[], BrickLinkClient] = BrickLinkClient
    _bricklink: BrickLinkClient | None = field(default=None, init=False, repr=False)
    _resources: AsyncExitStack = field(default_factory=AsyncExitStack, init=False, repr=False)
    _validator: PartValidator | None = field(default=None, init=False, repr=False)
    _minifig_sync: SetMinifigSynchronizer | None = field(default=None, init=False, repr=False)

    async def bricklink(self) -> BrickLinkClient:
        if self._bricklink is None:
            self._bricklink = await self._resources.enter_async_context(self.bricklink_factory())
        return self._bricklink

    async def part_validator(self) -> PartValidator:
        if self._validator is None:
            client = await self.bricklink()
            self._validator = PartValidator(
                CachedPartExistenceCheck(client.check_part, self.existence_cache),
                self.store,
                timeout_seconds=self.validation.check_timeout_seconds,
            )
        return self._validator

    def minifig_synchronizer(self) -> SetMinifigSynchronizer:
        if self._minifig_sync is None:
            self._minifig_sync = SetMinifigSynchronizer(self._fetch_set_minifigs, self.store)
        return self._minifig_sync

    async def _fetch_set_minifigs(self, set_number: str) -> list[BrickLinkSetMinifig]:
        client = await self.bricklink()
        return await client.fetch_set_minifigs(set_number)

    @property
    def pending_writes(self) -> int:
        return self._validator.pending_writes if self._validator is not None else 0

    async def aclose(self) -> None:
        if self._validator is not None:
            validator, self._validator = self._validator, None
            await validator.wait_for_background()
        self._bricklink = None
        self._minifig_sync = None
        resources, self._resources = self._resources, AsyncExitStack()
        await resources.aclose()


def init_database(*, database_uri: str | None = None) -> None:
    """Create or upgrade the schema and initialise the adapter."""

    if not is_started():
        startup(database_uri=database_uri)


def build_services(
    *,
    validation: ValidationConfig | None = None,
    store: SqlAlchemyCatalogStore | None = None,
    limiter: RateLimiter | None = None,
    bricklink_factory: Callable[[], BrickLinkClient] | None = None,
) -> AppServices:
    init_database()
    effective_validation = validation or get_validation_config()
    return AppServices(
        store=store or SqlAlchemyCatalogStore(),
        limiter=limiter or RateLimiter(SqlAlchemyRateLimitBackend()),
        validation=effective_validation,
        color_cache=LRUCache(COLOR_CACHE_SIZE),
        existence_cache=LRUCache(
            effective_validation.existence_cache_size,
            ttl_seconds=effective_validation.existence_cache_ttl_seconds,
        ),
        part_mapping_cache=LRUCache(PART_MAPPING_CACHE_SIZE),
        minifig_cache=LRUCache(MINIFIG_CACHE_SIZE),
        reverse_minifig_cache=LRUCache(MINIFIG_CACHE_SIZE),
        bricklink_factory=bricklink_factory or BrickLinkClient,
    )


async def validate_part(services: AppServices, request: ValidationRequest) -> ValidationResponse:
    """Run the guarded validator.

    Malformed input is rejected before BrickLink credentials are read. A
    self-heal write is left running in the background; ``services.aclose``
    waits for it.
    """

    normalized = request.normalized()
    return await handle_validation_request(
        normalized,
        validator=await services.part_validator(),
        limiter=services.limiter,
        config=services.validation,
    )


def _inventory_row(row: MissingRow) -> InventoryRow:
    row_type = RowType.CATALOG_PART
    if row.part_id.startswith(MINIFIG_PART_PREFIX):
        row_type = RowType.MINIFIG_PARENT
    return InventoryRow(
        part_id=row.part_id,
        color_id=row.color_id,
        quantity_required=row.quantity_required or 0,
        element_id=row.element_id,
        row_type=row_type,
    )


async def attach_identities(
    services: AppServices,
    rows: Sequence[MissingRow],
    *,
    inventory_rows: Sequence[InventoryRow] | None = None,
) -> list[MissingRow]:
    """Resolve every row without an identity against the catalog store.

    ``inventory_rows`` carries overrides (BL part ids, minifig ids, row types)
    keyed by ``(part_id, color_id)``; rows it does not cover are resolved as
    plain catalog parts, ``fig:`` rows as minifig parents. Parents without a
    BL minifig id are looked up in the global minifig mappings in one batch.
    """

    by_key = {(row.part_id, row.color_id): row for row in inventory_rows or ()}
    inventory = [by_key.get((row.part_id, row.color_id)) or _inventory_row(row) for row in rows]

    missing_minifig_id = [
        row
        for row in inventory
        if row.row_type is RowType.MINIFIG_PARENT and not row.bl_minifig_id
    ]
    if missing_minifig_id:
        mapper = MinifigMapper(services.store, global_cache=services.minifig_cache)
        found = await mapper.map_global(_fig_id(row) for row in missing_minifig_id)
        inventory = [_with_minifig_id(row, found.get(_fig_id(row))) for row in inventory]

    context = await asyncio.to_thread(
        load_resolution_context, services.store, inventory, color_cache=services.color_cache
    )
    return [
        row
        if row.identity is not None
        else dataclasses.replace(row, identity=resolve_part_identity(source, context))
        for row, source in zip(rows, inventory, strict=True)
    ]


def _fig_id(row: InventoryRow) -> str:
    return normalize_fig_id(row.part_id.removeprefix(MINIFIG_PART_PREFIX))


def _with_minifig_id(row: InventoryRow, bl_minifig_id: str | None) -> InventoryRow:
    if row.row_type is not RowType.MINIFIG_PARENT or row.bl_minifig_id or bl_minifig_id is None:
        return row
    return dataclasses.replace(row, bl_minifig_id=bl_minifig_id)


async def export_rows(
    services: AppServices,
    rows: Sequence[MissingRow],
    export_format: ExportFormat,
    *,
    resolve: bool = True,
    inventory_rows: Sequence[InventoryRow] | None = None,
    bricklink_options: BrickLinkOptions | None = None,
    rebrickable_options: RebrickableOptions | None = None,
) -> ExportResult:
    """Generate one manifest.

    With ``resolve`` the rows get identities from the catalog store first;
    without it the BrickLink export looks up rows lacking one individually.
    """

    prepared = (
        await attach_identities(services, rows, inventory_rows=inventory_rows)
        if resolve
        else list(rows)
    )

    match export_format:
        case ExportFormat.REBRICKABLE:
            rebrickable = generate_rebrickable_csv(prepared, rebrickable_options)
            return ExportResult(csv=rebrickable.csv, unmapped=rebrickable.unmapped)
        case ExportFormat.PICK_A_BRICK:
            pick_a_brick = generate_pick_a_brick_csv(prepared)
            return ExportResult(csv=pick_a_brick.csv, unmapped=pick_a_brick.unmapped)
        case ExportFormat.BRICKLINK:
            if all(row.identity is not None for row in prepared):
                bricklink = generate_bricklink_csv(prepared, bricklink_options)
            else:
                mapper = MinifigMapper(services.store, global_cache=services.minifig_cache)
                fallback = CatalogFallbackMapper(
                    services.store,
                    color_cache=services.color_cache,
                    part_cache=services.part_mapping_cache,
                    minifig_lookup=mapper.map_one_global,
                )
                bricklink = await generate_bricklink_csv_with_fallback(
                    prepared, bricklink_options, fallback
                )
            log.info(
                "BrickLink export: %d lines unmapped, %d minifigs",
                len(bricklink.unmapped),
                len(bricklink.exported_minifig_ids),
            )
            return ExportResult(
                csv=bricklink.csv,
                unmapped=bricklink.unmapped,
                exported_minifig_ids=bricklink.exported_minifig_ids,
            )


async def map_set_minifigs(
    services: AppServices,
    set_number: str,
    fig_ids: Sequence[str],
    *,
    read_only: bool = False,
) -> MinifigMappingResult:
    """Batched RB -> BL minifig mapping for one set, syncing from BrickLink when needed."""

    if read_only:
        mapper = MinifigMapper(services.store)
        return await mapper.map_set(set_number, fig_ids, read_only=True)

    mapper = MinifigMapper(
        services.store,
        sync=services.minifig_synchronizer().sync,
        global_cache=services.minifig_cache,
        reverse_cache=services.reverse_minifig_cache,
    )
    return await mapper.map_set(set_number, fig_ids)
