"""Reconciled RB/BL identity of one inventory line.

Identities are built once when an inventory is loaded and read everywhere
downstream (dedup, exports, pricing). Each row type is its own variant, so a
BrickLink minifig id can only ever sit on a minifig parent.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final, Literal

MINIFIG_PART_PREFIX: Final[str] = "fig:"
BRICKLINK_KEY_PREFIX: Final[str] = "bl:"


class RowType(StrEnum):
    CATALOG_PART = "catalog_part"
    MINIFIG_PARENT = "minifig_parent"
    MINIFIG_SUBPART = "minifig_subpart"


def canonical_key(rb_part_id: str, rb_color_id: int) -> str:
    return f"{rb_part_id}:{rb_color_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogPartIdentity:
    """A regular catalog part; ``bl_color_id`` is ``None`` when no color mapping exists."""

    rb_part_id: str
    rb_color_id: int
    bl_part_id: str | None
    bl_color_id: int | None
    element_id: str | None = None
    row_type: Literal[RowType.CATALOG_PART] = RowType.CATALOG_PART

    @property
    def canonical_key(self) -> str:
        return canonical_key(self.rb_part_id, self.rb_color_id)

    @property
    def bl_minifig_id(self) -> None:
        return None


@dataclass(frozen=True, slots=True, kw_only=True)
class MinifigParentIdentity:
    """A whole minifigure; exported as one BrickLink ``M`` item when its BL id is known."""

    rb_part_id: str
    bl_minifig_id: str | None
    rb_color_id: int = 0
    row_type: Literal[RowType.MINIFIG_PARENT] = RowType.MINIFIG_PARENT

    @property
    def canonical_key(self) -> str:
        return canonical_key(self.rb_part_id, self.rb_color_id)

    @property
    def rb_fig_id(self) -> str:
        return self.rb_part_id.removeprefix(MINIFIG_PART_PREFIX)

    @property
    def bl_part_id(self) -> None:
        return None

    @property
    def bl_color_id(self) -> None:
        return None

    @property
    def element_id(self) -> None:
        return None


@dataclass(frozen=True, slots=True, kw_only=True)
class MinifigSubpartIdentity:
    """A component part of a minifigure.

    Matched subparts are backed by an RB catalog part. Unmatched subparts only
    exist in BrickLink's minifig breakdown; their RB ids mirror the BL ids and
    the key is namespaced so they never collide with a catalog row.
    """

    rb_part_id: str
    rb_color_id: int
    bl_part_id: str | None
    bl_color_id: int | None
    matched: bool = True
    row_type: Literal[RowType.MINIFIG_SUBPART] = RowType.MINIFIG_SUBPART

    @property
    def canonical_key(self) -> str:
        if self.matched:
            return canonical_key(self.rb_part_id, self.rb_color_id)
        return f"{BRICKLINK_KEY_PREFIX}{self.bl_part_id}:{self.bl_color_id}"

    @property
    def bl_minifig_id(self) -> None:
        return None

    @property
    def element_id(self) -> None:
        return None


type PartIdentity = CatalogPartIdentity | MinifigParentIdentity | MinifigSubpartIdentity


def is_minifig_identity(identity: PartIdentity | None) -> bool:
    return identity is not None and identity.row_type is not RowType.CATALOG_PART


def unmatched_subpart_identity(bl_part_id: str, bl_color_id: int) -> MinifigSubpartIdentity:
    return MinifigSubpartIdentity(
        rb_part_id=bl_part_id,
        rb_color_id=bl_color_id,
        bl_part_id=bl_part_id,
        bl_color_id=bl_color_id,
        matched=False,
    )
