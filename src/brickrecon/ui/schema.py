"""Pydantic models for the JSON row files read and written by the CLI."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from brickrecon.domain.identity import RowType
from brickrecon.domain.rows import InventoryRow, MissingRow


class MissingRowPayload(BaseModel):
    """One shortage line; accepts snake_case or camelCase keys."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    set_number: str = Field(default="", alias="setNumber")
    part_id: str = Field(alias="partId")
    color_id: int = Field(alias="colorId")
    quantity_missing: int = Field(default=0, alias="quantityMissing")
    quantity_required: int | None = Field(default=None, alias="quantityRequired")
    element_id: str | None = Field(default=None, alias="elementId")
    bl_part_id: str | None = Field(default=None, alias="blPartId")
    bl_minifig_id: str | None = Field(default=None, alias="blMinifigId")
    row_type: RowType | None = Field(default=None, alias="rowType")

    @classmethod
    def from_row(cls, row: MissingRow) -> MissingRowPayload:
        return cls(
            set_number=row.set_number,
            part_id=row.part_id,
            color_id=row.color_id,
            quantity_missing=row.quantity_missing,
            quantity_required=row.quantity_required,
            element_id=row.element_id,
        )

    def to_missing_row(self) -> MissingRow:
        return MissingRow(
            set_number=self.set_number,
            part_id=self.part_id,
            color_id=self.color_id,
            quantity_missing=self.quantity_missing,
            quantity_required=self.quantity_required,
            element_id=self.element_id,
        )

    def to_inventory_row(self) -> InventoryRow | None:
        """Inventory overrides carried by this line, if it has any."""

        if self.bl_part_id is None and self.bl_minifig_id is None and self.row_type is None:
            return None
        return InventoryRow(
            part_id=self.part_id,
            color_id=self.color_id,
            quantity_required=self.quantity_required or 0,
            bricklink_part_id=self.bl_part_id,
            element_id=self.element_id,
            row_type=self.row_type or RowType.CATALOG_PART,
            bl_minifig_id=self.bl_minifig_id,
        )


MISSING_ROWS_ADAPTER: TypeAdapter[list[MissingRowPayload]] = TypeAdapter(list[MissingRowPayload])


def parse_missing_rows(data: bytes | str) -> list[MissingRowPayload]:
    return MISSING_ROWS_ADAPTER.validate_json(data)


def dump_missing_rows(rows: list[MissingRow]) -> bytes:
    return MISSING_ROWS_ADAPTER.dump_json(
        [MissingRowPayload.from_row(row) for row in rows],
        by_alias=True,
        exclude_none=True,
        indent=2,
    )
