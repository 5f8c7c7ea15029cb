from __future__ import annotations

import re

import httpx

from brickrecon.adapters.bricklink.oauth import BrickLinkOAuth


def _auth() -> BrickLinkOAuth:
    # Credentials, nonce and timestamp of the OAuth Core 1.0 appendix example
    return BrickLinkOAuth(
        "dpf43f3p2l4k3l03",
        "kd94hf93k423kf44",
        "nnch734d00sl2jdk",
        "pfkkdhi9sl3r4s00",
        nonce_factory=lambda: "kllo9940pd9333jh",
        clock=lambda: 1191242096.7,
    )


def _signature(header: str) -> str:
    match = re.search(r'oauth_signature="([^"]+)"', header)
    assert match is not None
    return match.group(1)


def test_authorization_header_matches_reference_signature() -> None:
    request = httpx.Request(
        "GET", "http://photos.example.net/photos?file=vacation.jpg&size=original"
    )

    header = _auth().authorization_header(request)

    assert header.startswith("OAuth ")
    assert 'oauth_consumer_key="dpf43f3p2l4k3l03"' in header
    assert 'oauth_token="nnch734d00sl2jdk"' in header
    assert 'oauth_signature_method="HMAC-SHA1"' in header
    assert 'oauth_timestamp="1191242096"' in header
    assert 'oauth_nonce="kllo9940pd9333jh"' in header
    assert _signature(header) == "tR3%2BTy81lMeYAr%2FFid0kMTYa%2FWM%3D"
    assert "file=" not in header


def test_repeated_query_keys_are_all_signed() -> None:
    auth = _auth()

    repeated = auth.authorization_header(httpx.Request("GET", "https://api.test/x?a=1&a=2"))
    last_only = auth.authorization_header(httpx.Request("GET", "https://api.test/x?a=2"))

    assert _signature(repeated) != _signature(last_only)


def test_auth_flow_sets_header_and_generates_fresh_nonces() -> None:
    auth = BrickLinkOAuth("ck", "cs", "tv", "ts")
    first = httpx.Request("GET", "https://api.test/items/PART/3001")
    second = httpx.Request("GET", "https://api.test/items/PART/3001")

    next(auth.auth_flow(first))
    next(auth.auth_flow(second))

    nonce = re.compile(r'oauth_nonce="([^"]+)"')
    first_nonce = nonce.search(first.headers["Authorization"])
    second_nonce = nonce.search(second.headers["Authorization"])
    assert first_nonce is not None
    assert second_nonce is not None
    assert first_nonce.group(1) != second_nonce.group(1)
