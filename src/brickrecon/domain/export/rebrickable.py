"""Rebrickable part-list CSV (``part_num,color_id,quantity``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from brickrecon.domain.identity import is_minifig_identity

from .csv import to_csv

if TYPE_CHECKING:
    from collections.abc import Sequence

    from brickrecon.domain.rows import MissingRow

HEADERS: Final[tuple[str, ...]] = ("part_num", "color_id", "quantity")


@dataclass(frozen=True, slots=True)
class RebrickableOptions:
    include_minifigs: bool = False


@dataclass(slots=True)
class RebrickableExportResult:
    csv: str
    unmapped: list[MissingRow] = field(default_factory=list["MissingRow"])


def generate_rebrickable_csv(
    rows: Sequence[MissingRow],
    options: RebrickableOptions | None = None,
) -> RebrickableExportResult:
    """Shortage lines first; minifig lines follow only when asked for.

    A minifig row is exported with its required quantity, since a parent
    minifig is bought as a whole unit rather than as a shortage.
    """

    options = options or RebrickableOptions()
    body: list[tuple[str, int, int]] = [
        (row.part_id, row.color_id, row.quantity_missing)
        for row in rows
        if not is_minifig_identity(row.identity) and row.quantity_missing > 0
    ]
    if options.include_minifigs:
        body.extend(
            (row.part_id, row.color_id, row.quantity_required or 0)
            for row in rows
            if is_minifig_identity(row.identity)
        )
    return RebrickableExportResult(csv=to_csv(HEADERS, body, include_bom=True))
