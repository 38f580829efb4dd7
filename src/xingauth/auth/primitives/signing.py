"""HMAC-SHA1 signature primitives for OAuth 1.0a request signing.

Composes the canonical request normalization of RFC 5849 Section 3.4 from
``oauthlib.oauth1.rfc5849.signature`` and reports malformed input as
SignatureComputationError.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from urllib.parse import urlsplit

from oauthlib.oauth1 import SIGNATURE_HMAC_SHA1, Client
from oauthlib.oauth1.rfc5849 import signature as rfc5849

from xingauth.auth.models.errors import SignatureComputationError

SIGNATURE_METHOD = SIGNATURE_HMAC_SHA1
OAUTH_VERSION = "1.0"

SIGNABLE_SCHEMES = ("http", "https")

Parameters = Mapping[str, str] | Iterable[tuple[str, str]]


def parameter_pairs(parameters: Parameters | None) -> list[tuple[str, str]]:
    """Flatten a mapping or an iterable of pairs into a list of pairs."""
    if parameters is None:
        return []
    if isinstance(parameters, Mapping):
        items = parameters.items()
    else:
        items = parameters
    return [(str(key), str(value)) for key, value in items]


def base_string_uri(url: str) -> str:
    """Build the base string URI (RFC 5849 Section 3.4.1.2).

    Raises:
        SignatureComputationError: If the URL is not an absolute http(s) URL
    """
    if not url or urlsplit(url).scheme.lower() not in SIGNABLE_SCHEMES:
        raise SignatureComputationError(f"URL must be absolute http(s): {url!r}")
    try:
        return rfc5849.base_string_uri(url)
    except ValueError as e:
        raise SignatureComputationError(f"Malformed URL {url!r}: {e}") from e


def normalize_parameters(parameters: Parameters) -> str:
    """Normalize request parameters (RFC 5849 Section 3.4.1.3.2).

    Any ``oauth_signature`` is excluded.
    """
    pairs = [
        (key, value)
        for key, value in parameter_pairs(parameters)
        if key != "oauth_signature"
    ]
    return rfc5849.normalize_parameters(pairs)


def signature_base_string(method: str, url: str, parameters: Parameters) -> str:
    """Build the signature base string (RFC 5849 Section 3.4.1.1).

    Query parameters of ``url`` are signed alongside ``parameters``.
    """
    if not method:
        raise SignatureComputationError("HTTP method is required")

    uri = base_string_uri(url)
    try:
        query = rfc5849.collect_parameters(uri_query=urlsplit(url).query)
    except ValueError as e:
        raise SignatureComputationError(f"Malformed query in {url!r}: {e}") from e

    normalized = normalize_parameters(query + parameter_pairs(parameters))
    return rfc5849.signature_base_string(method.upper(), uri, normalized)


def hmac_sha1_signature(
    base_string: str, consumer_secret: str, token_secret: str | None = None
) -> str:
    """Base64-encoded HMAC-SHA1 of the base string.

    The token secret is empty while no token has been issued yet.
    """
    client = Client(
        "", client_secret=consumer_secret, resource_owner_secret=token_secret or ""
    )
    return rfc5849.sign_hmac_sha1_with_client(base_string, client)
