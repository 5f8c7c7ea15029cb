"""Domain port definitions for adapters."""

from __future__ import annotations

from .bricklink import (
    BrickLinkItemRef,
    BrickLinkMappingLookup,
    BrickLinkSetMinifig,
    ItemStatus,
    ItemType,
    PartExistenceCheck,
    SetMinifigFetcher,
)
from .catalog import CatalogReader, ColorMaps, PartMappingWriter
from .minifigs import (
    MinifigMappingStore,
    MinifigPair,
    MinifigSyncStatus,
    RebrickableSetMinifig,
    SetMinifigSnapshot,
    SetMinifigSyncStore,
)

__all__ = [
    "BrickLinkItemRef",
    "BrickLinkMappingLookup",
    "BrickLinkSetMinifig",
    "CatalogReader",
    "ColorMaps",
    "ItemStatus",
    "ItemType",
    "MinifigMappingStore",
    "MinifigPair",
    "MinifigSyncStatus",
    "PartExistenceCheck",
    "PartMappingWriter",
    "RebrickableSetMinifig",
    "SetMinifigFetcher",
    "SetMinifigSnapshot",
    "SetMinifigSyncStore",
]
