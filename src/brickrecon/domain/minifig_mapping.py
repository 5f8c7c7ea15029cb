"""Batched RB -> BL minifig id mapping.

A set's mappings and its sync status come back from one store round trip.
Requested ids split into mapped, known-unmappable and pending; only a pending
id on a set that has not synced triggers BrickLink, once per set.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .ports.minifigs import MinifigSyncStatus, SetMinifigSnapshot

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from brickrecon.common.cache import LRUCache

    from .ports.minifigs import MinifigMappingStore

log = getLogger(__name__)

type SetSync = Callable[[str], Awaitable[bool]]


def normalize_fig_id(fig_id: str) -> str:
    return fig_id.strip().lower()


def _clean_fig_ids(fig_ids: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for fig_id in fig_ids:
        normalized = normalize_fig_id(fig_id or "")
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


@dataclass(slots=True)
class MinifigMappingResult:
    """``mappings`` holds ``None`` for figs known to have no BL counterpart."""

    mappings: dict[str, str | None] = field(default_factory=dict[str, "str | None"])
    sync_status: MinifigSyncStatus | None = None
    unmapped_fig_ids: list[str] = field(default_factory=list[str])
    sync_triggered: bool = False

    @property
    def mapped(self) -> dict[str, str]:
        return {fig: bl for fig, bl in self.mappings.items() if bl is not None}


class MinifigMapper:
    def __init__(
        self,
        store: MinifigMappingStore,
        *,
        sync: SetSync | None = None,
        global_cache: LRUCache[str, str | None] | None = None,
        reverse_cache: LRUCache[str, str | None] | None = None,
    ) -> None:
        self._store = store
        self._sync = sync
        self._global_cache = global_cache
        self._reverse_cache = reverse_cache

    async def map_set(
        self,
        set_number: str,
        fig_ids: Iterable[str],
        *,
        trigger_sync_if_missing: bool = True,
        read_only: bool = False,
    ) -> MinifigMappingResult:
        clean_ids = _clean_fig_ids(fig_ids)
        if not clean_ids:
            return MinifigMappingResult()

        snapshot = await self._fetch_snapshot(set_number, clean_ids) or SetMinifigSnapshot()
        found = dict(snapshot.mappings)
        pending = [fig_id for fig_id in clean_ids if fig_id not in found]

        if (
            not pending
            or snapshot.sync_status is MinifigSyncStatus.OK
            or read_only
            or not trigger_sync_if_missing
            or self._sync is None
        ):
            return _result(clean_ids, found, pending, snapshot.sync_status, triggered=False)

        log.info("Syncing set %s for %d unmapped minifigs", set_number, len(pending))
        if not await self._sync(set_number):
            return _result(clean_ids, found, pending, MinifigSyncStatus.ERROR, triggered=True)

        refreshed = await self._fetch_snapshot(set_number, pending)
        if refreshed is None:
            return _result(clean_ids, found, pending, snapshot.sync_status, triggered=True)
        found.update(refreshed.mappings)
        still_pending = [fig_id for fig_id in clean_ids if fig_id not in found]
        return _result(clean_ids, found, still_pending, MinifigSyncStatus.OK, triggered=True)

    async def map_global(self, fig_ids: Iterable[str]) -> dict[str, str | None]:
        """Map figs outside a set context: explicit mappings, then any per-set mapping."""

        clean_ids = _clean_fig_ids(fig_ids)
        results: dict[str, str | None] = {}
        uncached: list[str] = []
        for fig_id in clean_ids:
            entry = self._global_cache.get_entry(fig_id) if self._global_cache else None
            if entry is not None:
                results[fig_id] = entry.value
            else:
                uncached.append(fig_id)

        if uncached:
            try:
                fetched = await asyncio.to_thread(
                    self._store.fetch_global_minifig_mappings, uncached
                )
            except Exception as exc:  # noqa: BLE001
                log.error("Global minifig lookup failed for %d figs: %s", len(uncached), exc)
                fetched = None
            if fetched is not None:
                normalized = {normalize_fig_id(k): v for k, v in fetched.items()}
                for fig_id in uncached:
                    value = normalized.get(fig_id)
                    results[fig_id] = value
                    if self._global_cache is not None:
                        self._global_cache.set(fig_id, value)
            else:
                results.update(dict.fromkeys(uncached))

        return {fig_id: results.get(fig_id) for fig_id in clean_ids}

    async def map_one_global(self, fig_id: str) -> str | None:
        return (await self.map_global([fig_id])).get(normalize_fig_id(fig_id))

    async def map_bricklink_to_rebrickable(self, bl_minifig_id: str) -> str | None:
        key = bl_minifig_id.strip().lower()
        if not key:
            return None
        if self._reverse_cache is not None:
            entry = self._reverse_cache.get_entry(key)
            if entry is not None:
                return entry.value
        try:
            rb_fig_id = await asyncio.to_thread(
                self._store.find_rebrickable_fig_id, bl_minifig_id.strip()
            )
        except Exception as exc:  # noqa: BLE001
            log.error("Reverse minifig lookup failed for %s: %s", bl_minifig_id, exc)
            return None
        if self._reverse_cache is not None:
            self._reverse_cache.set(key, rb_fig_id)
        return rb_fig_id

    async def _fetch_snapshot(
        self, set_number: str, fig_ids: Sequence[str]
    ) -> SetMinifigSnapshot | None:
        """``None`` when the store read fails."""

        try:
            snapshot = await asyncio.to_thread(
                self._store.fetch_set_minifig_mappings, set_number, fig_ids
            )
        except Exception as exc:  # noqa: BLE001
            log.error("Failed to load minifig mappings for set %s: %s", set_number, exc)
            return None
        return SetMinifigSnapshot(
            mappings={normalize_fig_id(k): v for k, v in snapshot.mappings.items()},
            sync_status=snapshot.sync_status,
        )


def _result(
    clean_ids: Sequence[str],
    found: dict[str, str | None],
    pending: list[str],
    sync_status: MinifigSyncStatus | None,
    *,
    triggered: bool,
) -> MinifigMappingResult:
    return MinifigMappingResult(
        mappings={fig_id: found[fig_id] for fig_id in clean_ids if fig_id in found},
        sync_status=sync_status,
        unmapped_fig_ids=list(pending),
        sync_triggered=triggered,
    )
