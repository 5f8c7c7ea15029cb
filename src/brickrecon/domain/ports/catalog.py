"""Ports onto the RB/BL catalog store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


@dataclass(frozen=True, slots=True)
class ColorMaps:
    """RB color id -> BL color id, and the reverse."""

    rb_to_bl: Mapping[int, int] = field(default_factory=dict[int, int])
    bl_to_rb: Mapping[int, int] = field(default_factory=dict[int, int])


@runtime_checkable
class CatalogReader(Protocol):
    """Keyed reads of the cross-catalog mapping tables."""

    def load_color_maps(self) -> ColorMaps: ...

    def load_part_mappings(self, part_ids: Iterable[str]) -> dict[str, str]:
        """Return stored BL ids for the given RB part ids; unmapped ids are omitted."""
        ...

    def get_bl_part_id(self, rb_part_id: str) -> str | None: ...


@runtime_checkable
class PartMappingWriter(Protocol):
    """Keyed writes of corrected BL part ids."""

    def update_bl_part_id(self, rb_part_id: str, bl_part_id: str) -> bool:
        """Update the stored BL id if the RB part exists; return whether a row changed."""
        ...
