"""XING OAuth 1.0a client orchestration.

Wires the credential store, signature engine, handshake orchestrator and
request authorizer together from settings, with one lifecycle: construct
once at startup, share everywhere, close on shutdown.

:Example:
    .. code-block:: python

        settings = XingAuthSettings.from_env()
        async with XingAuthClient(settings) as client:
            # Request 1: send the user to the consent page
            redirect = await client.begin("session-123", callback_url)

            # Request 2: the provider redirected back
            credential = await client.complete("session-123", callback_url)

            # Any time later: sign API calls for that user
            request = client.authorize("GET", api_url, "session-123")
"""

from __future__ import annotations

import logging

from xingauth.auth.models.flow import AuthorizationSession
from xingauth.auth.models.requests import ParameterEncoding, SignedRequest
from xingauth.auth.models.tokens import AccessCredential
from xingauth.auth.primitives.signing import Parameters
from xingauth.auth.services.authorizer import RequestAuthorizer
from xingauth.auth.services.handshake import HandshakeOrchestrator
from xingauth.auth.services.signature import SignatureEngine
from xingauth.auth.services.store import CredentialStore, InMemoryCredentialStore
from xingauth.config import XingAuthSettings

logger = logging.getLogger(__name__)


class XingAuthClient:
    """Complete OAuth 1.0a client for the XING API.

    Demo pages and other handshake drivers use ``begin``/``complete``;
    the endpoint catalogue only needs ``authorize``.
    """

    def __init__(
        self,
        settings: XingAuthSettings,
        store: CredentialStore | None = None,
        signature_engine: SignatureEngine | None = None,
    ):
        """Initialize the client.

        Args:
            settings: Consumer identity, endpoints and timeouts
            store: Credential backend; defaults to an in-memory store
            signature_engine: Shared signature engine

        Raises:
            SignatureComputationError: If no consumer identity is configured
        """
        self.settings = settings
        self.consumer = settings.consumer_identity()
        self.store = store or InMemoryCredentialStore()
        self.signature_engine = signature_engine or SignatureEngine()

        self.handshake = HandshakeOrchestrator(
            self.consumer,
            self.store,
            endpoints=settings.endpoints(),
            signature_engine=self.signature_engine,
            timeout=settings.timeout,
        )
        self.authorizer = RequestAuthorizer(
            self.consumer, self.store, signature_engine=self.signature_engine
        )

    def session(self, session_key: str) -> AuthorizationSession:
        return self.handshake.session(session_key)

    def is_authorized(self, session_key: str) -> bool:
        """Whether the session holds an access credential."""
        return self.store.get(session_key, AccessCredential) is not None

    async def begin(self, session_key: str, callback_url: str | None = None) -> str:
        """Start the handshake and return the consent-page URL.

        A session left Denied by an earlier attempt is reset first.
        """
        callback_url = callback_url or self.settings.callback_url
        if not callback_url:
            raise ValueError("No callback URL given or configured")

        session = self.session(session_key)
        if session.state.is_terminal and not session.is_authorized:
            self.handshake.reset(session)
        return await self.handshake.begin_authorize(session, callback_url)

    async def complete(
        self, session_key: str, callback_url: str
    ) -> AccessCredential | None:
        """Finish the handshake from the URL the provider redirected to."""
        return await self.handshake.complete_from_callback(
            self.session(session_key), callback_url
        )

    def authorize(
        self,
        method: str,
        url: str,
        session_key: str,
        parameters: Parameters | None = None,
        encoding: ParameterEncoding | None = None,
    ) -> SignedRequest:
        return self.authorizer.authorize(
            method, url, session_key, parameters=parameters, encoding=encoding
        )

    def revoke(self, session_key: str) -> None:
        """Forget every credential of a session (logout).

        Raises:
            HandshakeFailure: If a handshake step is in progress for the
                session; the session is left untouched
        """
        logger.info(f"Revoking credentials for session {session_key}")
        self.handshake.discard(session_key)

    async def close(self) -> None:
        """Close all service connections."""
        await self.handshake.close()

    async def __aenter__(self) -> XingAuthClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
