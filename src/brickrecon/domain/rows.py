"""Input rows consumed by the resolver and the export generators."""

from __future__ import annotations

from dataclasses import dataclass

from .identity import PartIdentity, RowType


@dataclass(frozen=True, slots=True, kw_only=True)
class InventoryRow:
    """One (part, color) line of a set inventory as read from the RB catalog.

    ``bricklink_part_id`` is an explicit per-row BL override and beats every
    mapping table. ``row_type`` is set by callers that assemble minifig rows.
    """

    part_id: str
    color_id: int
    quantity_required: int = 0
    bricklink_part_id: str | None = None
    element_id: str | None = None
    row_type: RowType = RowType.CATALOG_PART
    bl_minifig_id: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class MissingRow:
    """A shortage line; built by the inventory-shortage computation, exported once."""

    set_number: str
    part_id: str
    color_id: int
    quantity_missing: int
    element_id: str | None = None
    identity: PartIdentity | None = None
    quantity_required: int | None = None
