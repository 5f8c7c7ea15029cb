"""RB <-> BL identity reconciliation: identities, resolver, validator, minifigs, exports."""

from __future__ import annotations

from .identity import (
    CatalogPartIdentity,
    MinifigParentIdentity,
    MinifigSubpartIdentity,
    PartIdentity,
    RowType,
    canonical_key,
)
from .resolution import (
    ResolutionContext,
    build_resolution_context,
    load_resolution_context,
    resolve_inventory,
    resolve_part_identity,
)
from .rows import InventoryRow, MissingRow

__all__ = [
    "CatalogPartIdentity",
    "InventoryRow",
    "MinifigParentIdentity",
    "MinifigSubpartIdentity",
    "MissingRow",
    "PartIdentity",
    "ResolutionContext",
    "RowType",
    "build_resolution_context",
    "canonical_key",
    "load_resolution_context",
    "resolve_inventory",
    "resolve_part_identity",
]
