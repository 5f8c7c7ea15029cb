from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from brickrecon.common.cache import LRUCache


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_lru_evicts_least_recently_used_entry() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.get("a") == 1
    cache.set("c", 3)

    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")


def test_has_does_not_refresh_recency() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.has("a")
    cache.set("c", 3)

    assert "a" not in cache
    assert "b" in cache


def test_overwriting_existing_key_does_not_evict() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert len(cache) == 2
    assert cache.get("a") == 10
    assert cache.get("b") == 2


def test_entries_expire_after_ttl() -> None:
    clock = _Clock()
    cache: LRUCache[str, str] = LRUCache(4, ttl_seconds=10, clock=clock)
    cache.set("part", "3001")

    clock.now = 10.0
    assert cache.get("part") == "3001"

    clock.now = 10.5
    assert cache.get("part") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default() -> None:
    clock = _Clock()
    cache: LRUCache[str, str] = LRUCache(4, ttl_seconds=100, clock=clock)
    cache.set("short", "x", ttl_seconds=1)
    cache.set("long", "y")

    clock.now = 2.0

    assert not cache.has("short")
    assert cache.has("long")
    assert cache.entries() == [("long", "y")]
    assert cache.values() == ["y"]


def test_get_entry_distinguishes_cached_none() -> None:
    cache: LRUCache[str, str | None] = LRUCache(4)
    cache.set("unmappable", None)

    entry = cache.get_entry("unmappable")

    assert entry is not None
    assert entry.value is None
    assert cache.get_entry("missing") is None


def test_delete_and_clear() -> None:
    cache: LRUCache[str, int] = LRUCache(4)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize(("max_size", "ttl"), [(0, None), (1, 0), (1, -5)])
def test_invalid_construction(max_size: int, ttl: float | None) -> None:
    with pytest.raises(ValueError):
        LRUCache(max_size, ttl_seconds=ttl)


def test_concurrent_set_and_get_never_exceed_max_size() -> None:
    cache: LRUCache[str, int] = LRUCache(32)
    oversize: list[int] = []

    def worker(offset: int) -> None:
        for index in range(500):
            key = f"{offset}:{index % 64}"
            cache.set(key, index)
            cache.get(f"{offset}:{(index * 7) % 64}")
            size = len(cache)
            if size > cache.max_size:
                oversize.append(size)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(8)))

    assert oversize == []
    assert len(cache) == cache.max_size
    assert all(value == cache.get(key) for key, value in cache.entries())
