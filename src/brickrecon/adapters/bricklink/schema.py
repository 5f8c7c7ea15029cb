"""Pydantic models describing the BrickLink Store API payloads."""

from __future__ import annotations

from collections.abc import Mapping
from logging import getLogger
from typing import Any, ClassVar, cast

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

log = getLogger(__name__)


class BrickLinkBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "BrickLink %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class Meta(BrickLinkBaseModel):
    code: int | None = None
    message: str | None = None
    description: str | None = None

    @property
    def detail(self) -> str:
        return self.description or self.message or "error"


class Envelope(BrickLinkBaseModel):
    meta: Meta | None = None
    data: Any = None

    @property
    def code(self) -> int | None:
        return self.meta.code if self.meta is not None else None


class ItemPayload(BrickLinkBaseModel):
    no: str
    type: str
    name: str | None = None
    category_id: int | None = None
    image_url: str | None = None


class SubsetEntry(BrickLinkBaseModel):
    item: ItemPayload
    quantity: int = 1
    color_id: int | None = None
    appear_as: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _positive_quantity(cls, value: object) -> object:
        if isinstance(value, int) and value > 0:
            return value
        return 1


class SubsetGroup(BrickLinkBaseModel):
    match_no: int | None = None
    entries: list[SubsetEntry]

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_entry(cls, value: object) -> object:
        # Some responses list entries directly instead of grouping them
        if isinstance(value, Mapping):
            mapping_value = cast(Mapping[str, object], value)
            if "entries" not in mapping_value and "item" in mapping_value:
                return {"entries": [dict(mapping_value)]}
        return value


def parse_subset_entries(data: object) -> list[SubsetEntry]:
    """Flatten ``data`` from ``/items/{type}/{no}/subsets`` into its entries."""

    if isinstance(data, Mapping):
        groups_payload = [data]
    elif isinstance(data, list):
        groups_payload = cast(list[object], data)
    else:
        return []

    entries: list[SubsetEntry] = []
    for group in groups_payload:
        entries.extend(SubsetGroup.model_validate(group).entries)
    return entries
