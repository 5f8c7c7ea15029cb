"""Shared fixed-window rate-limit counters in the ``rate_limits`` table."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from sqlalchemy import case, insert, select, update
from sqlalchemy.exc import IntegrityError

from brickrecon.common.rate_limit import RateLimitResult, retry_after_seconds

from .engine import session_factory as default_session_factory
from .mappings import rate_limits_table

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session, sessionmaker


def _now_ms() -> int:
    return int(time.time() * 1000)


class SqlAlchemyRateLimitBackend:
    """Atomic increment-and-compare per key and window.

    The hit is counted first; the request is denied once the count exceeds
    ``max_hits``. A window restarts when the current time passes its end.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._session_factory: Callable[[], Session] = (
            session_factory or default_session_factory()
        )
        self._clock = clock

    def consume(self, key: str, *, window_ms: int, max_hits: int) -> RateLimitResult:
        try:
            return self._consume(key, window_ms=window_ms, max_hits=max_hits)
        except IntegrityError:
            # Lost the race to create the bucket; the row exists now
            return self._consume(key, window_ms=window_ms, max_hits=max_hits)

    def _consume(self, key: str, *, window_ms: int, max_hits: int) -> RateLimitResult:
        now_ms = self._clock()
        table = rate_limits_table
        expired = table.c.window_start_ms + window_ms < now_ms
        with self._session_factory() as session, session.begin():
            result = session.execute(
                update(table)
                .where(table.c.key == key)
                .values(
                    count=case((expired, 1), else_=table.c.count + 1),
                    window_start_ms=case((expired, now_ms), else_=table.c.window_start_ms),
                )
            )
            if result.rowcount:
                count, window_start_ms = session.execute(
                    select(table.c.count, table.c.window_start_ms).where(table.c.key == key)
                ).one()
            else:
                session.execute(insert(table).values(key=key, count=1, window_start_ms=now_ms))
                count, window_start_ms = 1, now_ms

        if count > max_hits:
            return RateLimitResult(
                allowed=False,
                retry_after_seconds=retry_after_seconds(window_start_ms, window_ms, now_ms),
            )
        return RateLimitResult(allowed=True)
