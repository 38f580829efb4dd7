"""Exception hierarchy for OAuth 1.0a authorization errors.

Provides specific exception types for different failure modes so callers
can tell "run the handshake first" apart from "start over" and "try again".
"""

from __future__ import annotations


class OAuth1Error(Exception):
    """Base exception for all OAuth 1.0a related errors."""

    pass


class NotAuthorized(OAuth1Error):
    """Raised when no access credential exists for a session.

    Recoverable by running the authorization handshake for the session.
    """

    def __init__(self, session_key: str):
        super().__init__(f"Session {session_key!r} has no access credential")
        self.session_key = session_key


class HandshakeFailure(OAuth1Error):
    """Raised when the provider rejects a handshake step.

    Covers denied consent, expired or invalid verifiers, unconfirmed
    callbacks and mismatched callback tokens. Terminal for the session; the
    handshake must be restarted from the first step.
    """

    def __init__(self, message: str, problem: str | None = None):
        super().__init__(message)
        self.problem = problem


class SignatureComputationError(OAuth1Error):
    """Raised when a signature cannot be computed.

    Indicates a missing consumer identity or malformed inputs. This is a
    programming error and is never retried.
    """

    pass


class TransportFailure(OAuth1Error):
    """Raised when the provider cannot be reached.

    No state is mutated before this is raised, so the same step can be
    retried safely.
    """

    pass
