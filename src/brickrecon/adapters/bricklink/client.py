"""HTTP client for the BrickLink Store API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final, Self
from urllib.parse import quote

from pydantic import ValidationError

from brickrecon.adapters.http_resilience import ResilientClient
from brickrecon.config.bricklink import BrickLinkConfig, get_bricklink_config
from brickrecon.domain.ports.bricklink import BrickLinkSetMinifig, ItemStatus

from .oauth import BrickLinkOAuth
from .schema import Envelope, parse_subset_entries

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from types import TracebackType

    import httpx

log = getLogger(__name__)

ITEM_TYPE_PART: Final[str] = "PART"
ITEM_TYPE_SET: Final[str] = "SET"
ITEM_TYPE_MINIFIG: Final[str] = "MINIFIG"
_NOT_FOUND: Final[int] = 404


class BrickLinkAPIError(RuntimeError):
    """Raised for non-2xx responses and error ``meta`` payloads."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


def should_cache_payload(payload: object) -> bool:
    """Cache definitive answers only (found or not found)."""

    try:
        envelope = Envelope.model_validate(payload)
    except ValidationError:
        return False
    return envelope.code in (None, 200, _NOT_FOUND)


def _config_from_environment() -> BrickLinkConfig:
    return get_bricklink_config(cache_predicate=should_cache_payload)


def _default_client_factory(config: BrickLinkConfig) -> ResilientClient:
    auth = BrickLinkOAuth(
        config.consumer_key,
        config.consumer_secret,
        config.token_value,
        config.token_secret,
    )
    return ResilientClient(config.resilience, auth=auth)


def _item_path(item_type: str, item_no: str, *suffix: str) -> str:
    parts = ["items", item_type, quote(item_no, safe=""), *suffix]
    return "/" + "/".join(parts)


@dataclass(slots=True)
class BrickLinkClient:
    """Catalog lookups against the Store API.

    Use as an async context manager to share one connection pool across
    calls; otherwise every call opens and closes its own client.
    """

    config: BrickLinkConfig = field(default_factory=_config_from_environment)
    client_factory: Callable[[BrickLinkConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> Self:
        if self._client is None:
            self._client = self.client_factory(self.config)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def check_part(self, item_no: str) -> ItemStatus:
        """``EXISTS``/``NOT_FOUND`` for a BL part number; other failures raise."""

        envelope = await self._get(_item_path(ITEM_TYPE_PART, item_no))
        if envelope is None:
            return ItemStatus.NOT_FOUND
        return ItemStatus.EXISTS

    async def fetch_set_minifigs(self, set_number: str) -> list[BrickLinkSetMinifig]:
        envelope = await self._get(_item_path(ITEM_TYPE_SET, set_number, "subsets"))
        if envelope is None:
            raise BrickLinkAPIError(
                f"BrickLink set {set_number} not found", code=_NOT_FOUND
            )
        return [
            BrickLinkSetMinifig(
                minifig_no=entry.item.no,
                name=entry.item.name,
                quantity=entry.quantity,
            )
            for entry in parse_subset_entries(envelope.data)
            if entry.item.type == ITEM_TYPE_MINIFIG
        ]

    async def _get(self, path: str) -> Envelope | None:
        """GET ``path``; ``None`` when BrickLink answers 404 (HTTP or ``meta.code``)."""

        async with self._session() as client:
            response = await client.get(path)
        return _parse_envelope(response, path)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[ResilientClient]:
        if self._client is not None:
            yield self._client
            return
        async with self.client_factory(self.config) as client:
            yield client


def _parse_envelope(response: httpx.Response, path: str) -> Envelope | None:
    if response.status_code == _NOT_FOUND:
        return None
    if response.is_error:
        log.error("BrickLink HTTP %s for %s", response.status_code, path)
        raise BrickLinkAPIError(
            f"BrickLink HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    try:
        envelope = Envelope.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise BrickLinkAPIError(f"Malformed BrickLink payload for {path}") from exc

    if envelope.code == _NOT_FOUND:
        return None
    if envelope.code not in (None, 200):
        detail = envelope.meta.detail if envelope.meta is not None else "error"
        log.error("BrickLink API error %s for %s: %s", envelope.code, path, detail)
        raise BrickLinkAPIError(
            f"BrickLink meta {envelope.code}: {detail}",
            code=envelope.code,
            status_code=response.status_code,
        )
    return envelope
