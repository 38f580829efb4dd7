"""Configuration for the XING authorization client.

Settings come from the environment, optionally seeded from a ``.env`` file.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from xingauth.auth.models.errors import SignatureComputationError
from xingauth.auth.models.tokens import ConsumerIdentity

DEFAULT_API_BASE_URL = "https://api.xing.com/v1/"

# Value shipped in sample configuration files
PLACEHOLDER = "xxx"


class ProviderEndpoints(BaseModel):
    """Handshake resource locations under the provider's API base URL."""

    api_base_url: str = DEFAULT_API_BASE_URL
    request_token_path: str = "request_token"
    authorize_path: str = "authorize"
    access_token_path: str = "access_token"

    @field_validator("api_base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else f"{value}/"

    @property
    def request_token_url(self) -> str:
        return f"{self.api_base_url}{self.request_token_path}"

    @property
    def authorize_url(self) -> str:
        return f"{self.api_base_url}{self.authorize_path}"

    @property
    def access_token_url(self) -> str:
        return f"{self.api_base_url}{self.access_token_path}"


class XingAuthSettings(BaseModel):
    """Top-level configuration model."""

    consumer_key: str | None = None
    consumer_secret: str | None = Field(default=None, repr=False)
    api_base_url: str = DEFAULT_API_BASE_URL
    callback_url: str | None = None
    timeout: float = 30.0

    @classmethod
    def from_env(cls, env_file: str | None = None) -> XingAuthSettings:
        """Load settings from environment variables.

        Args:
            env_file: Optional path to a ``.env`` file. Variables already set
                in the environment take precedence over the file.

        Raises:
            ValidationError: If a variable holds a value of the wrong type
        """
        load_dotenv(env_file)

        values = {
            "consumer_key": os.getenv("XING_CONSUMER_KEY"),
            "consumer_secret": os.getenv("XING_CONSUMER_SECRET"),
            "callback_url": os.getenv("XING_CALLBACK_URL"),
        }
        # Unset or empty optional variables keep the model defaults
        for field_name, env_name in (
            ("api_base_url", "XING_API_BASE_URL"),
            ("timeout", "XING_TIMEOUT"),
        ):
            value = os.getenv(env_name)
            if value:
                values[field_name] = value
        return cls(**values)

    @property
    def is_configured(self) -> bool:
        """Whether a real consumer key and secret are present."""
        return all(
            value and value != PLACEHOLDER
            for value in (self.consumer_key, self.consumer_secret)
        )

    def consumer_identity(self) -> ConsumerIdentity:
        """Build the consumer identity.

        Raises:
            SignatureComputationError: If the key or secret is missing
        """
        if not self.is_configured:
            raise SignatureComputationError(
                "Set XING_CONSUMER_KEY and XING_CONSUMER_SECRET"
            )
        return ConsumerIdentity(key=self.consumer_key, secret=self.consumer_secret)

    def endpoints(self) -> ProviderEndpoints:
        return ProviderEndpoints(api_base_url=self.api_base_url)
