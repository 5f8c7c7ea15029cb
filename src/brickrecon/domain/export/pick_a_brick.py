"""LEGO Pick a Brick CSV (``Element ID,Quantity``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .csv import to_csv

if TYPE_CHECKING:
    from collections.abc import Sequence

    from brickrecon.domain.rows import MissingRow

HEADERS: Final[tuple[str, ...]] = ("Element ID", "Quantity")


@dataclass(slots=True)
class PickABrickExportResult:
    csv: str
    unmapped: list[MissingRow] = field(default_factory=list["MissingRow"])


def element_id_for(row: MissingRow) -> str | None:
    if row.element_id:
        return row.element_id
    if row.identity is not None and row.identity.element_id:
        return row.identity.element_id
    return None


def generate_pick_a_brick_csv(rows: Sequence[MissingRow]) -> PickABrickExportResult:
    """Drop rows without a positive shortage; shortages lacking an element id are unmapped."""

    body: list[tuple[str, int]] = []
    unmapped: list[MissingRow] = []
    for row in rows:
        if row.quantity_missing <= 0:
            continue
        element_id = element_id_for(row)
        if element_id is None:
            unmapped.append(row)
            continue
        body.append((element_id, row.quantity_missing))
    return PickABrickExportResult(
        csv=to_csv(HEADERS, body, include_bom=True),
        unmapped=unmapped,
    )
