"""On-demand validation and self-healing of stored BL part ids.

A stored BL id is checked against the live catalog. When it is gone, a short
ordered list of candidates derived from the RB and stored ids is probed one by
one; the first that exists is returned and written back in the background.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final, Literal, Self

from .ports.bricklink import ItemStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from brickrecon.common.cache import LRUCache
    from brickrecon.common.rate_limit import RateLimiter
    from brickrecon.config.validation import ValidationConfig

    from .ports.bricklink import PartExistenceCheck
    from .ports.catalog import PartMappingWriter

log = getLogger(__name__)

# One trailing lowercase letter after digits marks a sub-variant (3957a -> 3957)
PART_SUFFIX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d+)[a-z]$")
GLOBAL_RATE_LIMIT_KEY: Final[str] = "global:bl-validate"
UNKNOWN_CALLER: Final[str] = "unknown"


class MalformedRequestError(ValueError):
    """A required id is missing or blank."""


def strip_part_suffix(part_id: str) -> str | None:
    match = PART_SUFFIX_PATTERN.match(part_id)
    return match.group(1) if match else None


type CandidateStrategy = Callable[[str, str], str | None]


def _raw_source(stored_id: str, source_id: str) -> str | None:
    return source_id


def _stripped_source(stored_id: str, source_id: str) -> str | None:
    return strip_part_suffix(source_id)


def _stripped_stored(stored_id: str, source_id: str) -> str | None:
    return strip_part_suffix(stored_id)


CANDIDATE_STRATEGIES: Final[tuple[CandidateStrategy, ...]] = (
    _raw_source,
    _stripped_source,
    _stripped_stored,
)


def generate_candidates(
    stored_id: str,
    source_id: str,
    strategies: Sequence[CandidateStrategy] = CANDIDATE_STRATEGIES,
) -> list[str]:
    """Ordered, de-duplicated replacement candidates; never includes ``stored_id``."""

    candidates: list[str] = []
    for strategy in strategies:
        candidate = strategy(stored_id, source_id)
        if not candidate or candidate == stored_id or candidate in candidates:
            continue
        candidates.append(candidate)
    return candidates


class ValidationStatus(StrEnum):
    VALIDATED = "validated"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationOutcome:
    """``valid_id`` is ``None`` when nothing could be confirmed."""

    valid_id: str | None
    corrected: bool = False
    status: Literal[ValidationStatus.VALIDATED] = ValidationStatus.VALIDATED

    def to_payload(self) -> dict[str, object]:
        return {"validBlPartId": self.valid_id, "corrected": self.corrected}


@dataclass(frozen=True, slots=True, kw_only=True)
class RateLimited:
    retry_after_seconds: int
    scope: str = "caller"
    status: Literal[ValidationStatus.RATE_LIMITED] = ValidationStatus.RATE_LIMITED

    def to_payload(self) -> dict[str, object]:
        return {"error": "rate_limited", "retryAfterSeconds": self.retry_after_seconds}


type ValidationResponse = ValidationOutcome | RateLimited

UNRESOLVED: Final[ValidationOutcome] = ValidationOutcome(valid_id=None, corrected=False)


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationRequest:
    bl_part_id: str
    rb_part_id: str | None = None
    caller: str | None = None

    def normalized(self) -> ValidationRequest:
        """Strip whitespace; raise ``MalformedRequestError`` when the BL id is blank."""

        stored = (self.bl_part_id or "").strip()
        if not stored:
            raise MalformedRequestError("bl_part_id is required")
        source = (self.rb_part_id or "").strip() or None
        caller = (self.caller or "").strip() or UNKNOWN_CALLER
        return ValidationRequest(bl_part_id=stored, rb_part_id=source, caller=caller)


class CachedPartExistenceCheck:
    """Memoize definitive answers of ``check``; transient failures are never cached."""

    def __init__(self, check: PartExistenceCheck, cache: LRUCache[str, ItemStatus]) -> None:
        self._check = check
        self._cache = cache

    async def __call__(self, item_no: str) -> ItemStatus:
        cached = self._cache.get(item_no)
        if cached is not None:
            return cached
        status = await self._check(item_no)
        self._cache.set(item_no, status)
        return status


class PartValidator:
    """Validate one stored BL id and self-heal it from the RB id when possible.

    Write-backs run as detached tasks with their own error logging; use
    ``async with`` (or ``wait_for_background``) to drain them before shutdown.
    """

    def __init__(
        self,
        check: PartExistenceCheck,
        store: PartMappingWriter,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._check = check
        self._store = store
        self._timeout_seconds = timeout_seconds
        self._background: set[asyncio.Task[bool]] = set()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.wait_for_background()

    async def validate(self, stored_id: str, source_id: str | None = None) -> ValidationOutcome:
        try:
            return await self._validate(stored_id, source_id)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "BrickLink validation failed for bl_part_id=%s rb_part_id=%s: %s",
                stored_id,
                source_id,
                exc,
            )
            return UNRESOLVED

    async def wait_for_background(self) -> None:
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    @property
    def pending_writes(self) -> int:
        return len(self._background)

    async def _validate(self, stored_id: str, source_id: str | None) -> ValidationOutcome:
        if await self._probe(stored_id) is ItemStatus.EXISTS:
            return ValidationOutcome(valid_id=stored_id, corrected=False)
        if not source_id:
            return UNRESOLVED

        for candidate in generate_candidates(stored_id, source_id):
            if await self._probe(candidate) is ItemStatus.EXISTS:
                log.info(
                    "Corrected BrickLink part id %s -> %s (rb_part_id=%s)",
                    stored_id,
                    candidate,
                    source_id,
                )
                self._schedule_write_back(source_id, candidate)
                return ValidationOutcome(valid_id=candidate, corrected=True)
        return UNRESOLVED

    async def _probe(self, item_no: str) -> ItemStatus:
        async with asyncio.timeout(self._timeout_seconds):
            return await self._check(item_no)

    def _schedule_write_back(self, rb_part_id: str, bl_part_id: str) -> None:
        task = asyncio.create_task(
            asyncio.to_thread(self._store.update_bl_part_id, rb_part_id, bl_part_id),
            name=f"self-heal:{rb_part_id}",
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(
            lambda done: _log_write_back_result(done, rb_part_id, bl_part_id)
        )


def _log_write_back_result(task: asyncio.Task[bool], rb_part_id: str, bl_part_id: str) -> None:
    if task.cancelled():
        log.warning("Self-heal of rb_part_id=%s cancelled", rb_part_id)
        return
    exc = task.exception()
    if exc is not None:
        log.error(
            "Self-heal failed for rb_part_id=%s bl_part_id=%s: %s",
            rb_part_id,
            bl_part_id,
            exc,
        )
    elif not task.result():
        log.warning("Self-heal found no rb_parts row for rb_part_id=%s", rb_part_id)


async def handle_validation_request(
    request: ValidationRequest,
    *,
    validator: PartValidator,
    limiter: RateLimiter,
    config: ValidationConfig,
) -> ValidationResponse:
    """Guarded entry point: reject malformed input, enforce caller and global limits, validate.

    Raises ``MalformedRequestError`` before any rate-limit quota is consumed.
    """

    normalized = request.normalized()

    caller_limit = await asyncio.to_thread(
        limiter.consume,
        f"ip:bl-validate:{normalized.caller}",
        window_ms=config.window_ms,
        max_hits=config.per_caller_max_hits,
    )
    if not caller_limit.allowed:
        log.warning("Validation rate limited for caller=%s", normalized.caller)
        return RateLimited(retry_after_seconds=caller_limit.retry_after_seconds)

    global_limit = await asyncio.to_thread(
        limiter.consume,
        GLOBAL_RATE_LIMIT_KEY,
        window_ms=config.window_ms,
        max_hits=config.global_max_hits,
    )
    if not global_limit.allowed:
        log.warning("Validation rate limited globally")
        return RateLimited(retry_after_seconds=global_limit.retry_after_seconds, scope="global")

    return await validator.validate(normalized.bl_part_id, normalized.rb_part_id)
