"""Ports onto the persisted RB <-> BL minifig mapping tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .bricklink import BrickLinkSetMinifig


class MinifigSyncStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    PENDING = "pending"


@dataclass(slots=True)
class SetMinifigSnapshot:
    """Per-set mappings (``None`` = known unmappable) plus the set's sync status."""

    mappings: dict[str, str | None] = field(default_factory=dict[str, "str | None"])
    sync_status: MinifigSyncStatus | None = None


@dataclass(frozen=True, slots=True)
class RebrickableSetMinifig:
    fig_num: str
    name: str | None = None
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class MinifigPair:
    rb_fig_id: str
    bl_item_id: str
    confidence: float
    source: str


@runtime_checkable
class MinifigMappingStore(Protocol):
    def fetch_set_minifig_mappings(
        self, set_number: str, fig_ids: Sequence[str]
    ) -> SetMinifigSnapshot:
        """Fetch mappings for ``fig_ids`` and the set sync status in one round trip."""
        ...

    def fetch_global_minifig_mappings(self, fig_ids: Sequence[str]) -> dict[str, str]:
        """Explicit mappings first, then any per-set mapping; misses are omitted."""
        ...

    def find_rebrickable_fig_id(self, bl_minifig_id: str) -> str | None: ...


@runtime_checkable
class SetMinifigSyncStore(Protocol):
    def get_set_sync_status(self, set_number: str) -> MinifigSyncStatus | None: ...

    def record_set_sync(
        self, set_number: str, status: MinifigSyncStatus, *, error: str | None = None
    ) -> None: ...

    def store_set_minifigs(
        self, set_number: str, minifigs: Sequence[BrickLinkSetMinifig]
    ) -> None: ...

    def load_rebrickable_set_minifigs(self, set_number: str) -> list[RebrickableSetMinifig]: ...

    def store_minifig_pairs(self, set_number: str, pairs: Sequence[MinifigPair]) -> int:
        """Persist pairs; manually approved global mappings are left untouched."""
        ...
