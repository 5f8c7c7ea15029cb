"""Ports onto the BrickLink catalog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable


class ItemStatus(StrEnum):
    EXISTS = "exists"
    NOT_FOUND = "not_found"


class ItemType(StrEnum):
    PART = "P"
    MINIFIG = "M"


@dataclass(frozen=True, slots=True)
class BrickLinkItemRef:
    item_type: ItemType
    item_no: str
    color_id: int | None = None


@dataclass(frozen=True, slots=True)
class BrickLinkSetMinifig:
    minifig_no: str
    name: str | None = None
    quantity: int = 1


@runtime_checkable
class PartExistenceCheck(Protocol):
    """Ask the live catalog whether a BL part id exists.

    Transient failures (timeouts, transport errors, malformed payloads) are
    raised, never reported as ``NOT_FOUND``.
    """

    async def __call__(self, item_no: str) -> ItemStatus: ...


@runtime_checkable
class SetMinifigFetcher(Protocol):
    async def __call__(self, set_number: str) -> list[BrickLinkSetMinifig]: ...


@runtime_checkable
class BrickLinkMappingLookup(Protocol):
    """Per-row RB -> BL mapping used when a row carries no precomputed identity."""

    async def __call__(self, part_id: str, color_id: int) -> BrickLinkItemRef | None: ...
