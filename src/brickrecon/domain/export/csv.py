"""CSV encoding shared by the export generators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

type CsvCell = str | int | float | None

BOM: Final[str] = "\ufeff"
_SPECIAL_CHARACTERS: Final[frozenset[str]] = frozenset(',"\n\r')


def escape_csv_cell(value: CsvCell) -> str:
    """Quote a cell holding a comma, quote or line break; ``None`` renders empty."""

    if value is None:
        return ""
    if isinstance(value, int | float):
        return str(value)
    if any(char in _SPECIAL_CHARACTERS for char in value):
        return '"' + value.replace('"', '""') + '"'
    return value


def to_csv(
    headers: Sequence[str],
    rows: Iterable[Sequence[CsvCell]],
    *,
    include_bom: bool = False,
) -> str:
    lines = [",".join(escape_csv_cell(cell) for cell in headers)]
    lines.extend(",".join(escape_csv_cell(cell) for cell in row) for row in rows)
    csv = "\n".join(lines)
    return BOM + csv if include_bom else csv
