"""Request authorization for authenticated API calls."""

from __future__ import annotations

import logging

from oauthlib.common import add_params_to_uri

from xingauth.auth.models.errors import NotAuthorized, SignatureComputationError
from xingauth.auth.models.requests import ParameterEncoding, SignedRequest
from xingauth.auth.models.tokens import AccessCredential, ConsumerIdentity
from xingauth.auth.primitives.signing import Parameters, parameter_pairs
from xingauth.auth.services.signature import SignatureEngine
from xingauth.auth.services.store import CredentialStore

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})

# Methods whose parameters travel in a form-encoded body
BODY_METHODS = frozenset({"POST", "PUT"})


class RequestAuthorizer:
    """Signs outbound API calls with a session's access credential.

    Builds request descriptors only; sending them is up to the caller.
    """

    def __init__(
        self,
        consumer: ConsumerIdentity,
        store: CredentialStore,
        signature_engine: SignatureEngine | None = None,
        encoding: ParameterEncoding = ParameterEncoding.HEADER,
    ):
        self.consumer = consumer
        self.store = store
        self.signature_engine = signature_engine or SignatureEngine()
        self.encoding = encoding

    def authorize(
        self,
        method: str,
        url: str,
        session_key: str,
        parameters: Parameters | None = None,
        encoding: ParameterEncoding | None = None,
    ) -> SignedRequest:
        """Sign a request on behalf of the session's end user.

        Args:
            method: One of GET, POST, PUT or DELETE
            url: Absolute API URL, query string included
            session_key: Session whose access credential signs the call
            parameters: Extra request parameters. Sent as a form-encoded body
                for POST and PUT, appended to the query string otherwise
            encoding: Authorization header or query parameters; defaults to
                the authorizer's encoding

        Returns:
            SignedRequest ready for transmission

        Raises:
            NotAuthorized: If the session has no access credential
            SignatureComputationError: If the method or URL is malformed
        """
        method = (method or "").upper()
        if method not in SUPPORTED_METHODS:
            raise SignatureComputationError(f"Unsupported HTTP method: {method!r}")

        credential = self.store.get(session_key, AccessCredential)
        if credential is None:
            raise NotAuthorized(session_key)

        pairs = parameter_pairs(parameters)
        form_params: tuple[tuple[str, str], ...] = ()
        if pairs and method in BODY_METHODS:
            form_params = tuple(pairs)
        elif pairs:
            url = add_params_to_uri(url, pairs)

        protocol_params = self.signature_engine.sign_request(
            method, url, self.consumer, token=credential, parameters=form_params
        )

        logger.debug(f"Authorized {method} {url} for session {session_key}")

        return SignedRequest(
            method=method,
            url=url,
            protocol_params=protocol_params,
            encoding=encoding or self.encoding,
            form_params=form_params,
        )

