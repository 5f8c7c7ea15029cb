"""Export generators: Rebrickable, BrickLink wanted list and Pick a Brick CSVs."""

from __future__ import annotations

from .bricklink import (
    BrickLinkExportResult,
    BrickLinkOptions,
    CatalogFallbackMapper,
    Condition,
    generate_bricklink_csv,
    generate_bricklink_csv_with_fallback,
)
from .csv import escape_csv_cell, to_csv
from .pick_a_brick import PickABrickExportResult, generate_pick_a_brick_csv
from .rebrickable import RebrickableExportResult, RebrickableOptions, generate_rebrickable_csv

__all__ = [
    "BrickLinkExportResult",
    "BrickLinkOptions",
    "CatalogFallbackMapper",
    "Condition",
    "PickABrickExportResult",
    "RebrickableExportResult",
    "RebrickableOptions",
    "escape_csv_cell",
    "generate_bricklink_csv",
    "generate_bricklink_csv_with_fallback",
    "generate_pick_a_brick_csv",
    "generate_rebrickable_csv",
    "to_csv",
]
