from __future__ import annotations

import asyncio
import logging

import pytest

from brickrecon.common.cache import LRUCache
from brickrecon.common.rate_limit import RateLimiter
from brickrecon.config.validation import ValidationConfig
from brickrecon.domain.ports.bricklink import ItemStatus
from brickrecon.domain.validation import (
    GLOBAL_RATE_LIMIT_KEY,
    UNRESOLVED,
    CachedPartExistenceCheck,
    MalformedRequestError,
    PartValidator,
    RateLimited,
    ValidationOutcome,
    ValidationRequest,
    generate_candidates,
    handle_validation_request,
    strip_part_suffix,
)
from tests.helpers.fakes import FakeCatalogStore, FakeExistenceCheck


@pytest.mark.parametrize(
    ("part_id", "expected"),
    [("3957a", "3957"), ("3957", None), ("973pb1", None), ("3957A", None), ("a", None)],
)
def test_strip_part_suffix(part_id: str, expected: str | None) -> None:
    assert strip_part_suffix(part_id) == expected


def test_candidates_are_ordered_and_deduplicated() -> None:
    assert generate_candidates("3957a", "3957a") == ["3957"]
    assert generate_candidates("4073b", "3957a") == ["3957a", "3957", "4073"]
    assert generate_candidates("3001", "3001") == []


def test_existing_stored_id_is_returned_unchanged() -> None:
    check = FakeExistenceCheck(existing={"3001"})
    store = FakeCatalogStore(parts={"3001": "3001"})

    async def scenario() -> ValidationOutcome:
        async with PartValidator(check, store) as validator:
            return await validator.validate("3001", "3001")

    outcome = asyncio.run(scenario())

    assert outcome == ValidationOutcome(valid_id="3001", corrected=False)
    assert check.calls == ["3001"]
    assert store.updates == []


def test_self_heal_writes_corrected_id_once() -> None:
    check = FakeExistenceCheck(existing={"3957"})
    store = FakeCatalogStore(parts={"3957a": "3957a"})

    async def scenario() -> ValidationOutcome:
        async with PartValidator(check, store) as validator:
            return await validator.validate("3957a", "3957a")

    outcome = asyncio.run(scenario())

    assert outcome.to_payload() == {"validBlPartId": "3957", "corrected": True}
    assert check.calls == ["3957a", "3957"]
    assert store.updates == [("3957a", "3957")]
    assert store.parts["3957a"] == "3957"


def test_no_source_id_skips_candidates() -> None:
    check = FakeExistenceCheck()
    store = FakeCatalogStore()

    async def scenario() -> ValidationOutcome:
        async with PartValidator(check, store) as validator:
            return await validator.validate("3957a")

    assert asyncio.run(scenario()) is UNRESOLVED
    assert check.calls == ["3957a"]


def test_no_candidate_exists() -> None:
    check = FakeExistenceCheck()
    store = FakeCatalogStore(parts={"3957a": "3957a"})

    async def scenario() -> ValidationOutcome:
        async with PartValidator(check, store) as validator:
            return await validator.validate("3957a", "3957a")

    assert asyncio.run(scenario()).to_payload() == {"validBlPartId": None, "corrected": False}
    assert store.updates == []


def test_transient_failure_is_unresolved(caplog: pytest.LogCaptureFixture) -> None:
    check = FakeExistenceCheck(errors={"3957a": ConnectionError("boom")})
    store = FakeCatalogStore(parts={"3957a": "3957a"})

    async def scenario() -> ValidationOutcome:
        async with PartValidator(check, store) as validator:
            return await validator.validate("3957a", "3957a")

    with caplog.at_level(logging.ERROR):
        outcome = asyncio.run(scenario())

    assert outcome is UNRESOLVED
    assert store.updates == []
    assert "BrickLink validation failed" in caplog.text


def test_slow_check_times_out() -> None:
    async def hanging_check(item_no: str) -> ItemStatus:
        await asyncio.Event().wait()
        return ItemStatus.EXISTS

    async def scenario() -> ValidationOutcome:
        async with PartValidator(
            hanging_check, FakeCatalogStore(), timeout_seconds=0.01
        ) as validator:
            return await validator.validate("3001", "3001")

    assert asyncio.run(scenario()) is UNRESOLVED


def test_write_back_failure_does_not_affect_response(caplog: pytest.LogCaptureFixture) -> None:
    class _BrokenStore(FakeCatalogStore):
        def update_bl_part_id(self, rb_part_id: str, bl_part_id: str) -> bool:
            raise RuntimeError("read-only database")

    check = FakeExistenceCheck(existing={"3957"})

    async def scenario() -> ValidationOutcome:
        async with PartValidator(check, _BrokenStore()) as validator:
            return await validator.validate("3957a", "3957a")

    with caplog.at_level(logging.ERROR):
        outcome = asyncio.run(scenario())

    assert outcome == ValidationOutcome(valid_id="3957", corrected=True)
    assert "Self-heal failed for rb_part_id=3957a" in caplog.text


def test_wait_for_background_drains_pending_writes() -> None:
    check = FakeExistenceCheck(existing={"3957"})
    store = FakeCatalogStore(parts={"3957a": "3957a"})

    async def scenario() -> tuple[int, int]:
        validator = PartValidator(check, store)
        await validator.validate("3957a", "3957a")
        pending_before = validator.pending_writes
        await validator.wait_for_background()
        return pending_before, validator.pending_writes

    pending_before, pending_after = asyncio.run(scenario())

    assert pending_before == 1
    assert pending_after == 0
    assert store.updates == [("3957a", "3957")]


def test_cached_check_memoizes_definitive_answers() -> None:
    check = FakeExistenceCheck(existing={"3001"}, errors={"bad": TimeoutError()})
    cache: LRUCache[str, ItemStatus] = LRUCache(10)
    cached = CachedPartExistenceCheck(check, cache)

    async def scenario() -> None:
        assert await cached("3001") is ItemStatus.EXISTS
        assert await cached("3001") is ItemStatus.EXISTS
        assert await cached("9999") is ItemStatus.NOT_FOUND
        assert await cached("9999") is ItemStatus.NOT_FOUND
        for _ in range(2):
            with pytest.raises(TimeoutError):
                await cached("bad")

    asyncio.run(scenario())

    assert check.calls == ["3001", "9999", "bad", "bad"]
    assert not cache.has("bad")


def test_request_normalization() -> None:
    normalized = ValidationRequest(bl_part_id=" 3001 ", rb_part_id="  ", caller=None).normalized()

    assert normalized == ValidationRequest(bl_part_id="3001", rb_part_id=None, caller="unknown")


def _handle(
    request: ValidationRequest,
    *,
    limiter: RateLimiter,
    config: ValidationConfig,
    check: FakeExistenceCheck,
    store: FakeCatalogStore,
) -> RateLimited | ValidationOutcome:
    async def scenario() -> RateLimited | ValidationOutcome:
        async with PartValidator(check, store) as validator:
            return await handle_validation_request(
                request, validator=validator, limiter=limiter, config=config
            )

    return asyncio.run(scenario())


def test_malformed_request_consumes_no_quota() -> None:
    limiter = RateLimiter()

    with pytest.raises(MalformedRequestError):
        _handle(
            ValidationRequest(bl_part_id="   ", caller="1.2.3.4"),
            limiter=limiter,
            config=ValidationConfig(),
            check=FakeExistenceCheck(),
            store=FakeCatalogStore(),
        )

    assert limiter.local.bucket("ip:bl-validate:1.2.3.4") is None
    assert limiter.local.bucket(GLOBAL_RATE_LIMIT_KEY) is None


def test_caller_limit_blocks_second_request() -> None:
    limiter = RateLimiter()
    config = ValidationConfig(per_caller_max_hits=1)
    check = FakeExistenceCheck(existing={"3001"})
    store = FakeCatalogStore()
    request = ValidationRequest(bl_part_id="3001", caller="1.2.3.4")

    first = _handle(request, limiter=limiter, config=config, check=check, store=store)
    second = _handle(request, limiter=limiter, config=config, check=check, store=store)
    other = _handle(
        ValidationRequest(bl_part_id="3001", caller="5.6.7.8"),
        limiter=limiter,
        config=config,
        check=check,
        store=store,
    )

    assert first == ValidationOutcome(valid_id="3001")
    assert isinstance(second, RateLimited)
    assert second.scope == "caller"
    assert second.retry_after_seconds >= 1
    assert second.to_payload()["error"] == "rate_limited"
    assert other == ValidationOutcome(valid_id="3001")
    assert check.calls == ["3001", "3001"]


def test_global_limit_applies_across_callers() -> None:
    limiter = RateLimiter()
    config = ValidationConfig(global_max_hits=1)
    check = FakeExistenceCheck(existing={"3001"})
    store = FakeCatalogStore()

    _handle(
        ValidationRequest(bl_part_id="3001", caller="a"),
        limiter=limiter,
        config=config,
        check=check,
        store=store,
    )
    second = _handle(
        ValidationRequest(bl_part_id="3001", caller="b"),
        limiter=limiter,
        config=config,
        check=check,
        store=store,
    )

    assert isinstance(second, RateLimited)
    assert second.scope == "global"
