from __future__ import annotations

from typing import TYPE_CHECKING

from brickrecon.adapters.sqlalchemy import SqlAlchemyRateLimitBackend
from brickrecon.common.rate_limit import RateLimiter

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker


class _Clock:
    def __init__(self) -> None:
        self.now = 1_000_000

    def __call__(self) -> int:
        return self.now


def test_counts_hits_within_window(sqlite_session_factory: sessionmaker[Session]) -> None:
    clock = _Clock()
    backend = SqlAlchemyRateLimitBackend(sqlite_session_factory, clock=clock)

    results = [backend.consume("k", window_ms=1_000, max_hits=2) for _ in range(3)]

    assert [result.allowed for result in results] == [True, True, False]
    assert results[2].retry_after_seconds == 1


def test_window_resets_after_expiry(sqlite_session_factory: sessionmaker[Session]) -> None:
    clock = _Clock()
    backend = SqlAlchemyRateLimitBackend(sqlite_session_factory, clock=clock)

    assert backend.consume("k", window_ms=1_000, max_hits=1).allowed
    assert not backend.consume("k", window_ms=1_000, max_hits=1).allowed

    clock.now += 1_001
    assert backend.consume("k", window_ms=1_000, max_hits=1).allowed


def test_keys_are_isolated(sqlite_session_factory: sessionmaker[Session]) -> None:
    backend = SqlAlchemyRateLimitBackend(sqlite_session_factory, clock=_Clock())

    assert backend.consume("ip:bl-validate:a", window_ms=60_000, max_hits=1).allowed
    assert backend.consume("ip:bl-validate:b", window_ms=60_000, max_hits=1).allowed


def test_rate_limiter_uses_shared_backend(sqlite_session_factory: sessionmaker[Session]) -> None:
    limiter = RateLimiter(SqlAlchemyRateLimitBackend(sqlite_session_factory, clock=_Clock()))

    assert limiter.consume("k", window_ms=60_000, max_hits=1).allowed
    denied = limiter.consume("k", window_ms=60_000, max_hits=1)

    assert not denied.allowed
    assert denied.retry_after_seconds == 60
    assert limiter.local.bucket("k") is None
