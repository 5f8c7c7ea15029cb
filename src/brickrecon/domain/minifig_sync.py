"""Synchronize a set's BrickLink minifigs and pair them with the RB minifigs.

Pairing assumes both catalogs list a set's minifigs in the same order:

- equal counts pair by position (confidence 1.0)
- otherwise figs whose quantity is unique on both sides pair first (0.95),
  and whatever is left pairs by position (0.8)
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .ports.minifigs import MinifigPair, MinifigSyncStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .ports.bricklink import BrickLinkSetMinifig, SetMinifigFetcher
    from .ports.minifigs import RebrickableSetMinifig, SetMinifigSyncStore

log = getLogger(__name__)

POSITION_MATCH: Final[str] = "set:position-match"
QUANTITY_MATCH: Final[str] = "set:quantity-match"
POSITION_FALLBACK: Final[str] = "set:position-fallback"


def pair_set_minifigs(
    rb_minifigs: Sequence[RebrickableSetMinifig],
    bl_minifigs: Sequence[BrickLinkSetMinifig],
) -> list[MinifigPair]:
    if not rb_minifigs or not bl_minifigs:
        return []

    if len(rb_minifigs) == len(bl_minifigs):
        return [
            MinifigPair(
                rb_fig_id=rb.fig_num,
                bl_item_id=bl.minifig_no,
                confidence=1.0,
                source=POSITION_MATCH,
            )
            for rb, bl in zip(rb_minifigs, bl_minifigs, strict=True)
        ]

    rb_by_quantity: defaultdict[int, list[RebrickableSetMinifig]] = defaultdict(list)
    bl_by_quantity: defaultdict[int, list[BrickLinkSetMinifig]] = defaultdict(list)
    for rb in rb_minifigs:
        rb_by_quantity[rb.quantity].append(rb)
    for bl in bl_minifigs:
        bl_by_quantity[bl.quantity].append(bl)

    pairs: list[MinifigPair] = []
    matched_rb: set[str] = set()
    matched_bl: set[str] = set()
    for quantity, rb_group in rb_by_quantity.items():
        bl_group = bl_by_quantity.get(quantity, [])
        if len(rb_group) == 1 and len(bl_group) == 1:
            rb, bl = rb_group[0], bl_group[0]
            pairs.append(
                MinifigPair(
                    rb_fig_id=rb.fig_num,
                    bl_item_id=bl.minifig_no,
                    confidence=0.95,
                    source=QUANTITY_MATCH,
                )
            )
            matched_rb.add(rb.fig_num)
            matched_bl.add(bl.minifig_no)

    remaining_rb = [rb for rb in rb_minifigs if rb.fig_num not in matched_rb]
    remaining_bl = [bl for bl in bl_minifigs if bl.minifig_no not in matched_bl]
    pairs.extend(
        MinifigPair(
            rb_fig_id=rb.fig_num,
            bl_item_id=bl.minifig_no,
            confidence=0.8,
            source=POSITION_FALLBACK,
        )
        for rb, bl in zip(remaining_rb, remaining_bl, strict=False)
    )
    return pairs


class SetMinifigSynchronizer:
    """Fetch, store and pair a set's BrickLink minifigs.

    Concurrent ``sync`` calls for the same set share one in-flight task, so a
    burst of requests costs a single BrickLink call.
    """

    def __init__(self, fetcher: SetMinifigFetcher, store: SetMinifigSyncStore) -> None:
        self._fetcher = fetcher
        self._store = store
        self._in_flight: dict[str, asyncio.Future[bool]] = {}

    async def sync(self, set_number: str, *, force: bool = False) -> bool:
        existing = self._in_flight.get(set_number)
        if existing is not None:
            log.debug("Joining in-flight minifig sync for set %s", set_number)
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._sync(set_number, force=force))
        self._in_flight[set_number] = task
        task.add_done_callback(lambda _done: self._in_flight.pop(set_number, None))
        return await asyncio.shield(task)

    async def _sync(self, set_number: str, *, force: bool) -> bool:
        try:
            return await self._run(set_number, force=force)
        except Exception:  # noqa: BLE001
            log.exception("Minifig sync failed for set %s", set_number)
            return False

    async def _run(self, set_number: str, *, force: bool) -> bool:
        status = await asyncio.to_thread(self._store.get_set_sync_status, set_number)
        if status is MinifigSyncStatus.OK and not force:
            log.debug("Set %s already synced; skipping", set_number)
            return True

        try:
            bl_minifigs = await self._fetcher(set_number)
        except Exception as exc:  # noqa: BLE001
            log.error("Failed to fetch BrickLink minifigs for set %s: %s", set_number, exc)
            await asyncio.to_thread(
                self._store.record_set_sync,
                set_number,
                MinifigSyncStatus.ERROR,
                error=str(exc) or type(exc).__name__,
            )
            return False

        await asyncio.to_thread(self._store.record_set_sync, set_number, MinifigSyncStatus.OK)
        if not bl_minifigs:
            return True

        await asyncio.to_thread(self._store.store_set_minifigs, set_number, bl_minifigs)
        rb_minifigs = await asyncio.to_thread(
            self._store.load_rebrickable_set_minifigs, set_number
        )
        pairs = pair_set_minifigs(rb_minifigs, bl_minifigs)
        if len(rb_minifigs) != len(bl_minifigs):
            log.warning(
                "Minifig count mismatch for set %s: RB=%d BL=%d",
                set_number,
                len(rb_minifigs),
                len(bl_minifigs),
            )
        if pairs:
            stored = await asyncio.to_thread(self._store.store_minifig_pairs, set_number, pairs)
            log.info("Mapped %d minifigs for set %s (%d global)", len(pairs), set_number, stored)
        return True
