"""End-to-end tests for the XING OAuth client against a mock provider.

The provider is an ``httpx.MockTransport`` that verifies every handshake
signature the way the real service would before issuing credentials.
"""

import asyncio
import base64
import hashlib
import hmac
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from xingauth.auth.client import XingAuthClient
from xingauth.auth.models.errors import (
    HandshakeFailure,
    NotAuthorized,
    SignatureComputationError,
)
from xingauth.auth.models.flow import SessionState
from xingauth.auth.models.tokens import TemporaryCredential
from xingauth.config import XingAuthSettings

from conftest import FIXED_NONCE, FIXED_TIMESTAMP, fixed_engine, verify_request

CALLBACK = "https://app.example/callback"


class MockProvider:
    """Issues rt1/rts1 for request_token and at1/ats1 for access_token.

    While ``gate`` is set, requests are held until it is released.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        path = request.url.path

        if path == "/v1/request_token":
            params = verify_request(request, "cs1")
            assert params["oauth_callback"] == CALLBACK
            return httpx.Response(
                200,
                text="oauth_token=rt1&oauth_token_secret=rts1&oauth_callback_confirmed=true",
            )

        if path == "/v1/access_token":
            params = verify_request(request, "cs1", "rts1")
            if params["oauth_token"] != "rt1" or params["oauth_verifier"] != "v1":
                return httpx.Response(401, text="oauth_problem=verifier_invalid")
            return httpx.Response(
                200, text="oauth_token=at1&oauth_token_secret=ats1&user_id=42_abc"
            )

        return httpx.Response(404)


class TestXingAuthClient:
    @pytest.fixture(autouse=True)
    async def setup_client(self):
        # Arrange
        self.settings = XingAuthSettings(
            consumer_key="ck1",
            consumer_secret="cs1",
            api_base_url="https://api.example/v1/",
            callback_url=CALLBACK,
        )
        self.provider = MockProvider()
        self.client = XingAuthClient(self.settings, signature_engine=fixed_engine())
        await self.client.handshake._http_client.aclose()
        self.client.handshake._http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(self.provider)
        )
        yield
        await self.client.close()

    async def authorize_session(self, session_key: str = "s1"):
        redirect = await self.client.begin(session_key)
        token = parse_qs(urlparse(redirect).query)["oauth_token"][0]
        return await self.client.complete(
            session_key, f"{CALLBACK}?oauth_token={token}&oauth_verifier=v1"
        )

    async def test_full_handshake_and_signed_call(self):
        # Act: begin
        redirect = await self.client.begin("s1")

        # Assert: consent page for the temporary token
        assert redirect == "https://api.example/v1/authorize?oauth_token=rt1"
        assert self.client.session("s1").state is SessionState.AWAITING_PROVIDER_CALLBACK
        assert not self.client.is_authorized("s1")

        # Act: provider redirects back
        access = await self.client.complete(
            "s1", f"{CALLBACK}?oauth_token=rt1&oauth_verifier=v1"
        )

        # Assert: authorized
        assert access.token == "at1"
        assert access.token_secret == "ats1"
        assert access.owner_id == "42_abc"
        assert self.client.session("s1").state is SessionState.AUTHORIZED
        assert self.client.is_authorized("s1")

        # Act: sign an API call
        signed = self.client.authorize("GET", "https://api.example/v1/users/me", "s1")

        # Assert: matches a reference HMAC-SHA1 over the exact inputs
        normalized = (
            "oauth_consumer_key%3Dck1"
            f"%26oauth_nonce%3D{FIXED_NONCE}"
            "%26oauth_signature_method%3DHMAC-SHA1"
            f"%26oauth_timestamp%3D{FIXED_TIMESTAMP}"
            "%26oauth_token%3Dat1"
            "%26oauth_version%3D1.0"
        )
        base_string = f"GET&https%3A%2F%2Fapi.example%2Fv1%2Fusers%2Fme&{normalized}"
        expected = base64.b64encode(
            hmac.new(b"cs1&ats1", base_string.encode(), hashlib.sha1).digest()
        ).decode()

        assert signed.signature == expected
        assert signed.protocol_params["oauth_token"] == "at1"
        assert signed.protocol_params["oauth_consumer_key"] == "ck1"

    async def test_temporary_secret_never_sent(self):
        await self.authorize_session()

        for request in self.provider.requests:
            assert "rts1" not in str(request.url)
            assert "rts1" not in request.headers.get("Authorization", "")
            assert b"rts1" not in request.content

    async def test_authorize_before_handshake_fails(self):
        with pytest.raises(NotAuthorized):
            self.client.authorize("GET", "https://api.example/v1/users/me", "s1")

    async def test_revoke_then_authorize_fails(self):
        # Arrange
        await self.authorize_session()
        self.client.authorize("GET", "https://api.example/v1/users/me", "s1")

        # Act
        self.client.revoke("s1")

        # Assert
        with pytest.raises(NotAuthorized):
            self.client.authorize("GET", "https://api.example/v1/users/me", "s1")
        assert self.client.session("s1").state is SessionState.UNAUTHORIZED

    async def test_revoke_during_completion_is_refused_and_leaves_session_intact(self):
        # Arrange: the access-token exchange is held open by the provider
        await self.client.begin("s1")
        self.provider.gate = asyncio.Event()
        completion = asyncio.create_task(
            self.client.complete("s1", f"{CALLBACK}?oauth_token=rt1&oauth_verifier=v1")
        )
        while len(self.provider.requests) < 2:
            await asyncio.sleep(0)

        # Act
        with pytest.raises(HandshakeFailure):
            self.client.revoke("s1")

        # Assert: nothing was removed behind the running exchange
        assert self.client.store.get("s1", TemporaryCredential) is not None

        self.provider.gate.set()
        assert await completion is not None
        assert self.client.is_authorized("s1")

        # A revoke after the exchange settles logs the session out
        self.client.revoke("s1")
        assert not self.client.is_authorized("s1")
        with pytest.raises(NotAuthorized):
            self.client.authorize("GET", "https://api.example/v1/users/me", "s1")

    async def test_revoked_sessions_are_forgotten(self):
        # Arrange
        for n in range(50):
            await self.authorize_session(f"user-{n}")

        # Act
        for n in range(50):
            self.client.revoke(f"user-{n}")

        # Assert
        assert self.client.handshake._sessions == {}
        assert self.client.store._entries == {}
        assert self.client.store._locks == {}

    async def test_wrong_verifier_is_denied_and_restartable(self):
        # Arrange
        await self.client.begin("s1")

        # Act
        access = await self.client.complete(
            "s1", f"{CALLBACK}?oauth_token=rt1&oauth_verifier=wrong"
        )

        # Assert
        assert access is None
        assert self.client.session("s1").state is SessionState.DENIED

        # A later begin restarts the handshake
        assert await self.authorize_session() is not None
        assert self.client.is_authorized("s1")

    async def test_sessions_are_independent(self):
        await self.authorize_session("alice")

        assert self.client.is_authorized("alice")
        assert not self.client.is_authorized("bob")
        assert self.client.session("bob").state is SessionState.UNAUTHORIZED


class TestClientConfiguration:
    def test_unconfigured_consumer_is_rejected(self):
        with pytest.raises(SignatureComputationError):
            XingAuthClient(XingAuthSettings(consumer_key="xxx", consumer_secret="xxx"))

    async def test_begin_without_callback_url_fails(self):
        client = XingAuthClient(XingAuthSettings(consumer_key="ck1", consumer_secret="cs1"))
        try:
            with pytest.raises(ValueError):
                await client.begin("s1")
        finally:
            await client.close()
