"""Signed request envelope for authenticated API calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import httpx
from oauthlib.common import urlencode
from oauthlib.oauth1.rfc5849.parameters import prepare_headers, prepare_request_uri_query


class ParameterEncoding(str, Enum):
    """Where the protocol parameters travel on the wire."""

    HEADER = "header"
    QUERY = "query"


@dataclass(frozen=True)
class SignedRequest:
    """A signed, ready-to-send request descriptor.

    Ephemeral: constructed per call and never stored. ``protocol_params``
    keeps the protocol parameters in the order they were produced, with
    ``oauth_signature`` last.
    """

    method: str
    url: str
    protocol_params: dict[str, str]
    encoding: ParameterEncoding = ParameterEncoding.HEADER
    form_params: tuple[tuple[str, str], ...] = field(default=())

    @property
    def signature(self) -> str:
        return self.protocol_params["oauth_signature"]

    @property
    def authorization_header(self) -> str:
        """The ``Authorization`` header value (RFC 5849 Section 3.5.1)."""
        return prepare_headers(list(self.protocol_params.items()))["Authorization"]

    @property
    def signed_url(self) -> str:
        """Target URL, carrying the protocol parameters for query encoding."""
        if self.encoding is not ParameterEncoding.QUERY:
            return self.url
        return prepare_request_uri_query(list(self.protocol_params.items()), self.url)

    @property
    def headers(self) -> dict[str, str]:
        headers = {}
        if self.encoding is ParameterEncoding.HEADER:
            headers["Authorization"] = self.authorization_header
        if self.form_params:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        return headers

    @property
    def body(self) -> str | None:
        if not self.form_params:
            return None
        return urlencode(self.form_params)

    def to_httpx_request(self) -> httpx.Request:
        """Build an unsent ``httpx.Request`` for this envelope."""
        body = self.body
        return httpx.Request(
            self.method,
            self.signed_url,
            headers=self.headers,
            content=body.encode("utf-8") if body is not None else None,
        )
