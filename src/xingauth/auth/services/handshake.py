"""OAuth 1.0a three-legged handshake orchestration service.

Drives an AuthorizationSession through temporary-credential negotiation,
the consent-page redirect and the verifier exchange, writing credentials to
the CredentialStore only after each provider response has been validated.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager

import httpx
from pydantic import ValidationError

from xingauth.auth.models.errors import HandshakeFailure, TransportFailure
from xingauth.auth.models.flow import (
    AuthorizationCallback,
    AuthorizationRequest,
    AuthorizationSession,
    SessionState,
)
from xingauth.auth.models.requests import SignedRequest
from xingauth.auth.models.tokens import (
    AccessCredential,
    ConsumerIdentity,
    ProviderTokenResponse,
    TemporaryCredential,
)
from xingauth.auth.services.signature import SignatureEngine
from xingauth.auth.services.store import CredentialStore
from xingauth.config import ProviderEndpoints

logger = logging.getLogger(__name__)


class HandshakeOrchestrator:
    """Orchestrates the OAuth 1.0a handshake for many end users.

    Each end user is tracked by an AuthorizationSession keyed by a
    caller-supplied session identifier, so the handshake can begin on one
    web request and complete on a later one.

    Provider round trips are never retried automatically. A timeout,
    cancellation or transport failure leaves the session state and the
    store as they were before the call.
    """

    def __init__(
        self,
        consumer: ConsumerIdentity,
        store: CredentialStore,
        endpoints: ProviderEndpoints | None = None,
        signature_engine: SignatureEngine | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the handshake orchestrator.

        Args:
            consumer: The consumer identity registered with the provider
            store: Where temporary and access credentials are kept
            endpoints: Provider handshake endpoints
            signature_engine: Engine used to sign handshake requests
            timeout: HTTP request timeout in seconds
        """
        self.consumer = consumer
        self.store = store
        self.endpoints = endpoints or ProviderEndpoints()
        self.signature_engine = signature_engine or SignatureEngine()
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)
        self._sessions: dict[str, AuthorizationSession] = {}

    def session(self, session_key: str) -> AuthorizationSession:
        """Return the session for a key, creating an unauthorized one."""
        return self._sessions.setdefault(session_key, AuthorizationSession(session_key))

    @contextmanager
    def _step(self, session: AuthorizationSession, *allowed: SessionState):
        """Claim the session for one handshake step.

        Raises:
            HandshakeFailure: If the session is in the wrong state or another
                step is already running for it
        """
        with session._lock:
            if session._in_flight:
                raise HandshakeFailure(
                    f"A handshake step is already in progress for {session.key}"
                )
            if session.state not in allowed:
                raise HandshakeFailure(
                    f"Session {session.key} is {session.state.value}, expected "
                    f"{' or '.join(state.value for state in allowed)}"
                )
            session._in_flight = True
        try:
            yield
        finally:
            with session._lock:
                session._in_flight = False

    def _transition(self, session: AuthorizationSession, state: SessionState) -> None:
        logger.debug(f"Session {session.key}: {session.state.value} -> {state.value}")
        session.state = state

    async def begin_authorize(
        self, session: AuthorizationSession, callback_url: str
    ) -> str:
        """Obtain a temporary credential and build the consent-page URL.

        Args:
            session: An unauthorized session
            callback_url: Where the provider sends the user after consent

        Returns:
            The provider's consent-page URL for the temporary token

        Raises:
            HandshakeFailure: If the provider rejects the request or does not
                confirm the callback
            TransportFailure: If the provider cannot be reached
        """
        with self._step(session, SessionState.UNAUTHORIZED):
            logger.debug(f"Requesting temporary credential for session {session.key}")

            token_response = await self._post(
                self.endpoints.request_token_url,
                token=None,
                extra={"oauth_callback": callback_url},
            )

            if token_response.oauth_problem:
                raise HandshakeFailure(
                    f"Provider rejected temporary credential request: "
                    f"{token_response.oauth_problem}",
                    problem=token_response.oauth_problem,
                )

            try:
                temporary = token_response.to_temporary_credential()
            except ValueError as e:
                raise HandshakeFailure(f"Invalid temporary credential response: {e}") from e

            if not temporary.callback_confirmed:
                raise HandshakeFailure(
                    "Provider did not confirm the callback URL",
                    problem="callback_not_confirmed",
                )

            self.store.put(session.key, temporary)
            self._transition(session, SessionState.TEMPORARY_CREDENTIAL_OBTAINED)

            authorization_url = AuthorizationRequest(
                authorization_endpoint=self.endpoints.authorize_url,
                token=temporary.token,
            ).build_authorization_url()
            self._transition(session, SessionState.AWAITING_PROVIDER_CALLBACK)

            logger.info(f"Generated authorization URL for session {session.key}")
            return authorization_url

    async def complete_authorize(
        self, session: AuthorizationSession, returned_token: str, verifier: str
    ) -> AccessCredential | None:
        """Exchange the verifier for an access credential.

        Args:
            session: A session awaiting the provider callback
            returned_token: Temporary token the provider redirected back with
            verifier: Verifier the provider redirected back with

        Returns:
            The access credential, or None if the provider denied the
            exchange or the temporary credential expired

        Raises:
            HandshakeFailure: If the session is not awaiting a callback, the
                returned token does not match, or the response is malformed
            TransportFailure: If the provider cannot be reached
        """
        with self._step(session, SessionState.AWAITING_PROVIDER_CALLBACK):
            temporary = self.store.get(session.key, TemporaryCredential)
            if temporary is None or not secrets.compare_digest(
                temporary.token.encode("utf-8"), (returned_token or "").encode("utf-8")
            ):
                self._transition(session, SessionState.DENIED)
                raise HandshakeFailure(
                    f"Callback token does not match the temporary credential "
                    f"of session {session.key}",
                    problem="token_rejected",
                )

            logger.debug(f"Exchanging verifier for session {session.key}")

            token_response = await self._post(
                self.endpoints.access_token_url,
                token=temporary,
                extra={"oauth_verifier": verifier},
            )

            if token_response.oauth_problem:
                logger.warning(
                    f"Provider denied access credential for session {session.key}: "
                    f"{token_response.oauth_problem}"
                )
                self.store.remove(session.key, TemporaryCredential)
                self._transition(session, SessionState.DENIED)
                return None

            try:
                access = token_response.to_access_credential()
            except ValueError as e:
                self.store.remove(session.key, TemporaryCredential)
                self._transition(session, SessionState.DENIED)
                raise HandshakeFailure(f"Invalid access credential response: {e}") from e

            self.store.put(session.key, access)
            self.store.remove(session.key, TemporaryCredential)
            self._transition(session, SessionState.AUTHORIZED)

            logger.info(f"Session {session.key} authorized")
            return access

    async def complete_from_callback(
        self, session: AuthorizationSession, callback_url: str
    ) -> AccessCredential | None:
        """Complete the handshake from the full callback URL.

        A callback reporting that the user declined moves the session to
        Denied and returns None.
        """
        callback = AuthorizationCallback.from_url(callback_url)

        if callback.is_denied():
            with self._step(session, SessionState.AWAITING_PROVIDER_CALLBACK):
                logger.warning(f"User declined authorization for session {session.key}")
                self.store.remove(session.key, TemporaryCredential)
                self._transition(session, SessionState.DENIED)
            return None

        if not callback.is_success():
            raise HandshakeFailure(
                "Callback lacks oauth_token or oauth_verifier", problem="parameter_absent"
            )

        return await self.complete_authorize(session, callback.token, callback.verifier)

    def reset(self, session: AuthorizationSession) -> None:
        """Return a session to Unauthorized so the handshake can restart.

        The temporary credential is discarded; an existing access credential
        is left for the caller to revoke through the store.
        """
        with self._step(session, *SessionState):
            self.store.remove(session.key, TemporaryCredential)
            self._transition(session, SessionState.UNAUTHORIZED)

    def discard(self, session_key: str) -> None:
        """Forget a session together with every credential it holds.

        Raises:
            HandshakeFailure: If a handshake step is in progress for the
                session; nothing is removed in that case
        """
        session = self._sessions.get(session_key)
        if session is None:
            self.store.remove(session_key)
            return

        with self._step(session, *SessionState):
            self.store.remove(session_key)
            self._transition(session, SessionState.UNAUTHORIZED)
            del self._sessions[session_key]
        logger.debug(f"Discarded session {session_key}")

    async def _post(
        self,
        url: str,
        token: TemporaryCredential | None,
        extra: dict[str, str],
    ) -> ProviderTokenResponse:
        """Send a signed handshake request and parse the form-encoded answer.

        Client errors come back as a response carrying ``oauth_problem``;
        server errors and network failures raise TransportFailure.
        """
        protocol_params = self.signature_engine.sign_request(
            "POST", url, self.consumer, token=token, extra=extra
        )
        headers = SignedRequest("POST", url, protocol_params).headers
        headers["Accept"] = "application/x-www-form-urlencoded"

        try:
            response = await self._http_client.post(url, headers=headers)
        except httpx.HTTPError as e:
            raise TransportFailure(f"HTTP error during handshake with {url}: {e}") from e

        if response.status_code >= 500:
            raise TransportFailure(
                f"Provider error {response.status_code} from {url}"
            )

        try:
            token_response = ProviderTokenResponse.from_form(response.text)
        except ValidationError as e:
            raise HandshakeFailure(f"Invalid token response format: {e}") from e

        if response.status_code >= 400 and not token_response.oauth_problem:
            token_response.oauth_problem = f"http_{response.status_code}"

        if token_response.oauth_problem:
            logger.warning(
                f"Handshake request to {url} failed with {response.status_code}: "
                f"{token_response.oauth_problem}"
            )
        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()

