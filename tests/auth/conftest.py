import base64
import hashlib
import hmac
import re
from unittest.mock import MagicMock
from urllib.parse import parse_qsl, quote, unquote, urlsplit

import httpx

from xingauth.auth.services.signature import SignatureEngine

FIXED_TIMESTAMP = 1700000000
FIXED_NONCE = bytes(range(16)).hex()


def fixed_engine() -> SignatureEngine:
    """Engine with a pinned clock and a deterministic random source."""
    return SignatureEngine(clock=lambda: FIXED_TIMESTAMP, random_bytes=lambda n: bytes(range(n)))


def form_response(status_code: int, body: str) -> MagicMock:
    """Mock httpx response carrying a form-encoded body."""
    response = MagicMock()
    response.status_code = status_code
    response.text = body
    return response


def _enc(value: str) -> str:
    return quote(value, safe="-._~")


def reference_signature(
    method: str,
    base_url: str,
    params: list[tuple[str, str]],
    consumer_secret: str,
    token_secret: str = "",
) -> str:
    """HMAC-SHA1 signature computed straight from RFC 5849, for comparison."""
    normalized = "&".join(
        f"{k}={v}" for k, v in sorted((_enc(k), _enc(v)) for k, v in params)
    )
    base_string = f"{method.upper()}&{_enc(base_url)}&{_enc(normalized)}"
    key = f"{_enc(consumer_secret)}&{_enc(token_secret)}"
    digest = hmac.new(key.encode(), base_string.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def parse_authorization_header(value: str) -> dict[str, str]:
    assert value.startswith("OAuth ")
    return {
        unquote(key): unquote(val)
        for key, val in re.findall(r'([^\s,=]+)="([^"]*)"', value[len("OAuth ") :])
    }


def verify_request(
    request: httpx.Request, consumer_secret: str, token_secret: str = ""
) -> dict[str, str]:
    """Check a request's signature the way a provider would.

    Returns the request's protocol parameters.
    """
    parts = urlsplit(str(request.url))
    params = parse_qsl(parts.query, keep_blank_values=True)

    if "Authorization" in request.headers:
        params += list(parse_authorization_header(request.headers["Authorization"]).items())

    if request.headers.get("Content-Type") == "application/x-www-form-urlencoded":
        params += parse_qsl(request.content.decode(), keep_blank_values=True)

    protocol = {k: v for k, v in params if k.startswith("oauth_")}
    signed = [(k, v) for k, v in params if k != "oauth_signature"]
    base_url = f"{parts.scheme}://{parts.netloc}{parts.path}"

    expected = reference_signature(
        request.method, base_url, signed, consumer_secret, token_secret
    )
    assert protocol["oauth_signature"] == expected
    assert protocol["oauth_signature_method"] == "HMAC-SHA1"
    assert protocol["oauth_version"] == "1.0"
    return protocol
