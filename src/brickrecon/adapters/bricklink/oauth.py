"""OAuth 1.0a request signing for the BrickLink Store API."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from oauthlib.oauth1 import SIGNATURE_HMAC, SIGNATURE_TYPE_AUTH_HEADER, Client

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


class BrickLinkOAuth(httpx.Auth):
    """Sign every request (HMAC-SHA1, ``Authorization`` header) with a fresh nonce.

    ``nonce_factory`` and ``clock`` pin the nonce and timestamp; left unset,
    oauthlib generates both per request.
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        token_value: str,
        token_secret: str,
        *,
        nonce_factory: Callable[[], str] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._token_value = token_value
        self._token_secret = token_secret
        self._nonce_factory = nonce_factory
        self._clock = clock

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = self.authorization_header(request)
        yield request

    def authorization_header(self, request: httpx.Request) -> str:
        signer = Client(
            self._consumer_key,
            client_secret=self._consumer_secret,
            resource_owner_key=self._token_value,
            resource_owner_secret=self._token_secret,
            signature_method=SIGNATURE_HMAC,
            signature_type=SIGNATURE_TYPE_AUTH_HEADER,
            nonce=self._nonce_factory() if self._nonce_factory is not None else None,
            timestamp=str(int(self._clock())) if self._clock is not None else None,
        )
        # Query parameters, repeated keys included, are read from the URI itself
        _uri, headers, _body = signer.sign(str(request.url), http_method=request.method)
        return headers["Authorization"]
