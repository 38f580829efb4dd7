"""OAuth 1.0a HMAC-SHA1 signature service.

Produces per-request signatures together with the nonce and timestamp they
were computed over. Wall-clock time and randomness are injected so that
tests can pin them and assert exact signatures.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable, Mapping
from typing import NamedTuple

from xingauth.auth.models.errors import SignatureComputationError
from xingauth.auth.models.tokens import AccessCredential, ConsumerIdentity, TemporaryCredential
from xingauth.auth.primitives.signing import (
    OAUTH_VERSION,
    SIGNATURE_METHOD,
    Parameters,
    hmac_sha1_signature,
    parameter_pairs,
    signature_base_string,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
RandomBytes = Callable[[int], bytes]

NONCE_BYTES = 16

# Protocol parameters the engine generates itself
GENERATED_PARAMETERS = frozenset(
    {"oauth_nonce", "oauth_timestamp", "oauth_signature_method", "oauth_version"}
)


class SignatureResult(NamedTuple):
    signature: str
    nonce: str
    timestamp: str


class SignatureEngine:
    """Computes OAuth 1.0a HMAC-SHA1 request signatures.

    Stateless apart from its clock and random source, so one engine can be
    shared by any number of concurrent callers without locking.
    """

    def __init__(
        self,
        clock: Clock = time.time,
        random_bytes: RandomBytes = secrets.token_bytes,
    ):
        """Initialize the signature engine.

        Args:
            clock: Returns seconds since the Unix epoch
            random_bytes: Returns ``n`` cryptographically random bytes
        """
        self._clock = clock
        self._random_bytes = random_bytes

    def generate_nonce(self) -> str:
        """Generate a nonce from 16 fresh random bytes, hex encoded."""
        return self._random_bytes(NONCE_BYTES).hex()

    def generate_timestamp(self) -> str:
        return str(int(self._clock()))

    def sign(
        self,
        method: str,
        url: str,
        parameters: Parameters | None,
        consumer_secret: str | None,
        token_secret: str | None = None,
    ) -> SignatureResult:
        """Sign a request with a fresh nonce and timestamp.

        Args:
            method: HTTP method
            url: Absolute target URL; its query parameters are signed too
            parameters: Caller-supplied protocol parameters (consumer key,
                token, callback, verifier) and request body parameters
            consumer_secret: The consumer's shared secret
            token_secret: Secret of the temporary or access credential, if any

        Returns:
            SignatureResult with the signature and the nonce and timestamp
            it covers

        Raises:
            SignatureComputationError: If the consumer secret is missing or
                the inputs are malformed
        """
        if not consumer_secret:
            raise SignatureComputationError("Consumer secret is required for signing")

        pairs = parameter_pairs(parameters)
        reserved = GENERATED_PARAMETERS.intersection(key for key, _ in pairs)
        if reserved:
            raise SignatureComputationError(
                f"Parameters may not override generated values: {sorted(reserved)}"
            )

        nonce = self.generate_nonce()
        timestamp = self.generate_timestamp()
        pairs.extend(
            [
                ("oauth_signature_method", SIGNATURE_METHOD),
                ("oauth_timestamp", timestamp),
                ("oauth_nonce", nonce),
                ("oauth_version", OAUTH_VERSION),
            ]
        )

        base_string = signature_base_string(method, url, pairs)
        signature = hmac_sha1_signature(base_string, consumer_secret, token_secret)
        return SignatureResult(signature, nonce, timestamp)

    def sign_request(
        self,
        method: str,
        url: str,
        consumer: ConsumerIdentity | None,
        token: TemporaryCredential | AccessCredential | None = None,
        parameters: Parameters | None = None,
        extra: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Sign a request and return its complete protocol parameter set.

        Args:
            method: HTTP method
            url: Absolute target URL
            consumer: The consumer identity
            token: Temporary or access credential to sign with, if any
            parameters: Request body parameters (not protocol parameters)
            extra: Additional protocol parameters such as ``oauth_callback``
                or ``oauth_verifier``

        Returns:
            Ordered protocol parameters, ending with ``oauth_signature``

        Raises:
            SignatureComputationError: If the consumer identity is missing or
                the inputs are malformed
        """
        if consumer is None or not consumer.key:
            raise SignatureComputationError("Consumer identity is required for signing")

        protocol = {"oauth_consumer_key": consumer.key}
        if token is not None:
            protocol["oauth_token"] = token.token
        for key, value in (extra or {}).items():
            if not key.startswith("oauth_"):
                raise SignatureComputationError(f"Not a protocol parameter: {key!r}")
            protocol[key] = value

        result = self.sign(
            method,
            url,
            list(protocol.items()) + parameter_pairs(parameters),
            consumer.secret,
            token.token_secret if token is not None else None,
        )

        logger.debug(f"Signed {method.upper()} {url} with nonce {result.nonce}")

        protocol.update(
            {
                "oauth_signature_method": SIGNATURE_METHOD,
                "oauth_timestamp": result.timestamp,
                "oauth_nonce": result.nonce,
                "oauth_version": OAUTH_VERSION,
                "oauth_signature": result.signature,
            }
        )
        return protocol
