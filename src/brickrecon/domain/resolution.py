"""Per-row RB -> BL identity resolution.

Precedence for the BL part id of a catalog row:
1) the row's explicit ``bricklink_part_id`` override
2) ``ResolutionContext.part_mappings``
3) the RB part id itself (both catalogs share most part numbers)

Colors have no default: an RB color without a BL mapping resolves to ``None``.
Resolution is pure; every lookup table is preloaded into the context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .identity import (
    CatalogPartIdentity,
    MinifigParentIdentity,
    MinifigSubpartIdentity,
    PartIdentity,
    RowType,
    canonical_key,
    unmatched_subpart_identity,
)
from .ports.catalog import ColorMaps

if TYPE_CHECKING:
    from collections.abc import Container, Iterable, Mapping

    from brickrecon.common.cache import LRUCache

    from .ports.catalog import CatalogReader
    from .rows import InventoryRow

log = getLogger(__name__)

COLOR_MAPS_CACHE_KEY: Final[str] = "color_maps"
COLOR_MAPS_TTL_SECONDS: Final[float] = 24 * 60 * 60.0


def _frozen[K, V](mapping: Mapping[K, V] | None = None) -> Mapping[K, V]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class ResolutionContext:
    """Lookup tables for one bulk operation. Owned by the caller, read-only here."""

    rb_to_bl_color: Mapping[int, int] = field(default_factory=_frozen)
    bl_to_rb_color: Mapping[int, int] = field(default_factory=_frozen)
    part_mappings: Mapping[str, str] = field(default_factory=_frozen)
    bl_to_rb_part: Mapping[str, str] = field(default_factory=_frozen)


def build_resolution_context(
    rows: Iterable[InventoryRow],
    *,
    color_maps: ColorMaps,
    stored_part_mappings: Mapping[str, str] | None = None,
) -> ResolutionContext:
    """Assemble a context from preloaded color maps, stored part mappings and row overrides."""

    part_mappings: dict[str, str] = dict(stored_part_mappings or {})
    for row in rows:
        if row.row_type is RowType.MINIFIG_PARENT:
            continue
        if row.bricklink_part_id:
            part_mappings[row.part_id] = row.bricklink_part_id

    bl_to_rb_part: dict[str, str] = {}
    for rb_part_id, bl_part_id in part_mappings.items():
        bl_to_rb_part.setdefault(bl_part_id, rb_part_id)

    return ResolutionContext(
        rb_to_bl_color=_frozen(color_maps.rb_to_bl),
        bl_to_rb_color=_frozen(color_maps.bl_to_rb),
        part_mappings=_frozen(part_mappings),
        bl_to_rb_part=_frozen(bl_to_rb_part),
    )


def resolve_part_identity(row: InventoryRow, context: ResolutionContext) -> PartIdentity:
    match row.row_type:
        case RowType.MINIFIG_PARENT:
            return MinifigParentIdentity(
                rb_part_id=row.part_id,
                rb_color_id=row.color_id,
                bl_minifig_id=row.bl_minifig_id or None,
            )
        case RowType.MINIFIG_SUBPART:
            return resolve_rebrickable_subpart_identity(
                row.part_id,
                row.color_id,
                context,
                known_bl_part_id=row.bricklink_part_id,
            )
        case RowType.CATALOG_PART:
            return CatalogPartIdentity(
                rb_part_id=row.part_id,
                rb_color_id=row.color_id,
                bl_part_id=_bl_part_id(row.part_id, context, override=row.bricklink_part_id),
                bl_color_id=context.rb_to_bl_color.get(row.color_id),
                element_id=row.element_id or None,
            )


def resolve_rebrickable_subpart_identity(
    rb_part_id: str,
    rb_color_id: int,
    context: ResolutionContext,
    *,
    known_bl_part_id: str | None = None,
) -> MinifigSubpartIdentity:
    """Subparts from the RB minifig breakdown always reference RB catalog parts."""

    return MinifigSubpartIdentity(
        rb_part_id=rb_part_id,
        rb_color_id=rb_color_id,
        bl_part_id=_bl_part_id(rb_part_id, context, override=known_bl_part_id),
        bl_color_id=context.rb_to_bl_color.get(rb_color_id),
    )


def resolve_bricklink_subpart_identity(
    bl_part_id: str,
    bl_color_id: int,
    catalog_keys: Container[str],
    context: ResolutionContext,
    *,
    rb_color_id: int | None = None,
) -> MinifigSubpartIdentity:
    """Match a subpart from BrickLink's minifig breakdown back onto the RB inventory.

    Tries the reverse part/color maps, then the BL part id under the RB color,
    then the literal BL ids. Anything else becomes an unmatched subpart.
    """

    rb_color = rb_color_id if rb_color_id is not None else context.bl_to_rb_color.get(bl_color_id)
    rb_part = context.bl_to_rb_part.get(bl_part_id)

    if rb_part is not None and rb_color is not None:
        if canonical_key(rb_part, rb_color) in catalog_keys:
            return MinifigSubpartIdentity(
                rb_part_id=rb_part,
                rb_color_id=rb_color,
                bl_part_id=bl_part_id,
                bl_color_id=bl_color_id,
            )

    if rb_color is not None and canonical_key(bl_part_id, rb_color) in catalog_keys:
        return MinifigSubpartIdentity(
            rb_part_id=bl_part_id,
            rb_color_id=rb_color,
            bl_part_id=bl_part_id,
            bl_color_id=bl_color_id,
        )

    if canonical_key(bl_part_id, bl_color_id) in catalog_keys:
        return MinifigSubpartIdentity(
            rb_part_id=bl_part_id,
            rb_color_id=bl_color_id,
            bl_part_id=bl_part_id,
            bl_color_id=bl_color_id,
        )

    return unmatched_subpart_identity(bl_part_id, bl_color_id)


def resolve_inventory(
    rows: Iterable[InventoryRow],
    context: ResolutionContext,
) -> dict[str, PartIdentity]:
    """Resolve every row; the first row for a canonical key wins."""

    identities: dict[str, PartIdentity] = {}
    for row in rows:
        identity = resolve_part_identity(row, context)
        key = identity.canonical_key
        if key in identities:
            log.debug("Skipping duplicate inventory row for %s", key)
            continue
        identities[key] = identity
    return identities


def load_color_maps(
    reader: CatalogReader,
    *,
    cache: LRUCache[str, ColorMaps] | None = None,
) -> ColorMaps:
    """Read color maps through ``cache``; a failed read yields empty maps (not cached)."""

    if cache is not None:
        cached = cache.get(COLOR_MAPS_CACHE_KEY)
        if cached is not None:
            return cached

    try:
        color_maps = reader.load_color_maps()
    except Exception:  # noqa: BLE001
        log.exception("Failed to load color maps; colors will resolve as unmapped")
        return ColorMaps()

    if cache is not None:
        cache.set(COLOR_MAPS_CACHE_KEY, color_maps, ttl_seconds=COLOR_MAPS_TTL_SECONDS)
    return color_maps


def load_resolution_context(
    reader: CatalogReader,
    rows: Iterable[InventoryRow],
    *,
    color_cache: LRUCache[str, ColorMaps] | None = None,
) -> ResolutionContext:
    """Build a context with one color-map read (cached) and one batched part-mapping read."""

    row_list = list(rows)
    color_maps = load_color_maps(reader, cache=color_cache)
    part_ids = sorted(
        {row.part_id for row in row_list if row.row_type is not RowType.MINIFIG_PARENT}
    )

    stored: dict[str, str] = {}
    if part_ids:
        try:
            stored = reader.load_part_mappings(part_ids)
        except Exception:  # noqa: BLE001
            log.exception(
                "Failed to load part mappings for %d parts; using same-id defaults",
                len(part_ids),
            )

    return build_resolution_context(
        row_list, color_maps=color_maps, stored_part_mappings=stored
    )


def _bl_part_id(
    rb_part_id: str,
    context: ResolutionContext,
    *,
    override: str | None,
) -> str:
    if override:
        return override
    return context.part_mappings.get(rb_part_id, rb_part_id)
