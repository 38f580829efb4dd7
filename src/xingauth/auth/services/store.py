"""Credential storage for OAuth 1.0a sessions.

Holds the temporary and access credentials of every authorization session,
keyed by an opaque session identifier supplied by the host integration.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Protocol

from xingauth.auth.models.tokens import AccessCredential, Credential, TemporaryCredential

logger = logging.getLogger(__name__)

CREDENTIAL_KINDS = (TemporaryCredential, AccessCredential)


class CredentialStore(Protocol):
    """Protocol for credential persistence backends.

    Implementations must give linearizable get/put per key, lose no updates
    under concurrent writers, and never block one key on another.
    """

    def put(self, session_key: str, credential: Credential) -> None:
        """Store a credential, replacing any prior one of the same kind."""
        ...

    def get(
        self, session_key: str, kind: type[Credential] = AccessCredential
    ) -> Credential | None:
        """Return the credential of ``kind`` for the key, or None."""
        ...

    def remove(self, session_key: str, kind: type[Credential] | None = None) -> None:
        """Drop the credential of ``kind``, or every credential, for the key."""
        ...


def _check_kind(kind: type) -> None:
    if kind not in CREDENTIAL_KINDS:
        raise TypeError(f"Unsupported credential kind: {kind!r}")


class _KeyLock:
    """A session key's lock and the number of callers holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class InMemoryCredentialStore:
    """Store credentials in local memory.

    Valid for the process lifetime. Each session key has its own lock, so
    writers for one session never wait on another session. A key's lock is
    dropped once no caller holds or awaits it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[type, Credential]] = {}
        self._locks: dict[str, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _locked(self, session_key: str):
        with self._registry_lock:
            key_lock = self._locks.get(session_key)
            if key_lock is None:
                key_lock = self._locks[session_key] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._registry_lock:
                key_lock.users -= 1
                if not key_lock.users:
                    del self._locks[session_key]

    # ------------------------------------------------------------------
    def put(self, session_key: str, credential: Credential) -> None:
        kind = type(credential)
        _check_kind(kind)
        with self._locked(session_key):
            self._entries.setdefault(session_key, {})[kind] = credential
        logger.debug(f"Stored {kind.__name__} for session {session_key}")

    def get(
        self, session_key: str, kind: type[Credential] = AccessCredential
    ) -> Credential | None:
        _check_kind(kind)
        with self._locked(session_key):
            return self._entries.get(session_key, {}).get(kind)

    def remove(self, session_key: str, kind: type[Credential] | None = None) -> None:
        if kind is not None:
            _check_kind(kind)
        with self._locked(session_key):
            entry = self._entries.get(session_key)
            if entry is None:
                return
            if kind is None:
                entry.clear()
            else:
                entry.pop(kind, None)
            if not entry:
                del self._entries[session_key]
        logger.debug(f"Removed credentials for session {session_key}")
