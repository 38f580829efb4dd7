"""Credential models for OAuth 1.0a.

Contains the immutable key/secret pairs exchanged during and after the
handshake, and the provider's form-encoded token response.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qsl

from pydantic import BaseModel


@dataclass(frozen=True)
class ConsumerIdentity:
    """The application's own key/secret pair, registered with the provider."""

    key: str
    secret: str

    def __repr__(self) -> str:
        return f"ConsumerIdentity(key={self.key!r}, secret=***)"


@dataclass(frozen=True)
class TemporaryCredential:
    """Short-lived token pair used only to complete the handshake.

    The secret never goes over the wire; it only keys the signature of the
    access-credential request.
    """

    token: str
    token_secret: str
    callback_confirmed: bool = False

    def __repr__(self) -> str:
        return (
            f"TemporaryCredential(token={self.token!r}, token_secret=***, "
            f"callback_confirmed={self.callback_confirmed})"
        )


@dataclass(frozen=True)
class AccessCredential:
    """Long-lived token pair authorizing API calls on behalf of an end user."""

    token: str
    token_secret: str
    owner_id: str | None = None  # Opaque provider user id

    def __repr__(self) -> str:
        return (
            f"AccessCredential(token={self.token!r}, token_secret=***, "
            f"owner_id={self.owner_id!r})"
        )


Credential = TemporaryCredential | AccessCredential


class ProviderTokenResponse(BaseModel):
    """Token endpoint response, sent as application/x-www-form-urlencoded.

    Both handshake endpoints answer in this format. Error responses carry
    an ``oauth_problem`` code instead of the token pair.
    """

    oauth_token: str | None = None
    oauth_token_secret: str | None = None
    oauth_callback_confirmed: str | None = None
    user_id: str | None = None

    # Problem reporting extension
    oauth_problem: str | None = None
    oauth_problem_advice: str | None = None

    @classmethod
    def from_form(cls, body: str) -> ProviderTokenResponse:
        """Parse a form-encoded body, keeping the first value of each key."""
        values: dict[str, str] = {}
        for key, value in parse_qsl(body, keep_blank_values=True):
            values.setdefault(key, value)
        return cls(**values)

    def has_token_pair(self) -> bool:
        return bool(self.oauth_token) and self.oauth_token_secret is not None

    def is_callback_confirmed(self) -> bool:
        return (self.oauth_callback_confirmed or "").lower() == "true"

    def to_temporary_credential(self) -> TemporaryCredential:
        """Convert to a TemporaryCredential.

        Raises:
            ValueError: If the response lacks the token pair
        """
        if not self.has_token_pair():
            raise ValueError("Response lacks oauth_token/oauth_token_secret")
        return TemporaryCredential(
            token=self.oauth_token,
            token_secret=self.oauth_token_secret,
            callback_confirmed=self.is_callback_confirmed(),
        )

    def to_access_credential(self) -> AccessCredential:
        """Convert to an AccessCredential.

        Raises:
            ValueError: If the response lacks the token pair
        """
        if not self.has_token_pair():
            raise ValueError("Response lacks oauth_token/oauth_token_secret")
        return AccessCredential(
            token=self.oauth_token,
            token_secret=self.oauth_token_secret,
            owner_id=self.user_id,
        )
