"""Authorization flow models for OAuth 1.0a.

Contains the per-user handshake state machine and callback handling.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import parse_qs, urlencode, urlparse


class SessionState(str, Enum):
    """Handshake progress for one end user."""

    UNAUTHORIZED = "unauthorized"
    TEMPORARY_CREDENTIAL_OBTAINED = "temporary_credential_obtained"
    AWAITING_PROVIDER_CALLBACK = "awaiting_provider_callback"
    AUTHORIZED = "authorized"
    DENIED = "denied"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.AUTHORIZED, SessionState.DENIED)


@dataclass(eq=False)
class AuthorizationSession:
    """Tracks handshake progress for one session key.

    The state is only changed by the HandshakeOrchestrator. ``_in_flight``
    marks a provider round trip in progress for this session.
    """

    key: str
    state: SessionState = SessionState.UNAUTHORIZED
    _in_flight: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_authorized(self) -> bool:
        return self.state is SessionState.AUTHORIZED


@dataclass(frozen=True)
class AuthorizationRequest:
    """Consent-page redirect for a temporary credential."""

    authorization_endpoint: str
    token: str

    def build_authorization_url(self) -> str:
        """Build the complete consent-page URL."""
        separator = "&" if urlparse(self.authorization_endpoint).query else "?"
        params = {"oauth_token": self.token}
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationCallback:
    """Query parameters the provider redirects the user back with."""

    token: str | None = None
    verifier: str | None = None
    denied: str | None = None

    @classmethod
    def from_url(cls, callback_url: str) -> AuthorizationCallback:
        query_params = parse_qs(urlparse(callback_url).query, keep_blank_values=True)

        # Extract single values from query parameter lists
        def get_single_param(key: str) -> str | None:
            values = query_params.get(key, [])
            return values[0] if values else None

        return cls(
            token=get_single_param("oauth_token"),
            verifier=get_single_param("oauth_verifier"),
            denied=get_single_param("denied"),
        )

    def is_success(self) -> bool:
        return self.denied is None and bool(self.token) and bool(self.verifier)

    def is_denied(self) -> bool:
        return self.denied is not None
