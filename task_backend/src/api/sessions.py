from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from threading import Lock, RLock
from typing import Callable, Optional

from .errors import InvalidCredentials, UserNotFound, ValidationError
from .models import SessionEntity
from .repositories import UserDirectory, utcnow
from .security import CredentialStore
from .settings import Settings

logger = logging.getLogger(__name__)

# 32 random bytes, i.e. 256 bits of entropy per token.
TOKEN_BYTES = 32

Clock = Callable[[], datetime]


# PUBLIC_INTERFACE
class SessionStore(ABC):
    """Abstract contract for session persistence backends."""

    @abstractmethod
    def add(self, session: SessionEntity) -> None:
        """Persist a new session."""

    @abstractmethod
    def get(self, token: str) -> Optional[SessionEntity]:
        """Return the session for ``token``, or None."""

    @abstractmethod
    def touch(self, token: str, seen_at: datetime) -> None:
        """Record activity on a session. Unknown tokens are ignored."""

    @abstractmethod
    def delete(self, token: str) -> bool:
        """Delete a session. Return True if it existed."""

    @abstractmethod
    def delete_for_user(self, user_id: int) -> int:
        """Delete every session of a user and return how many were removed."""

    @abstractmethod
    def delete_expired(self, created_before: datetime, seen_before: datetime) -> int:
        """
        Delete sessions created at or before ``created_before`` or last seen
        at or before ``seen_before``. Return how many were removed.
        """


class InMemorySessionStore(SessionStore):
    """
    Thread-safe in-memory session store. Sessions do not outlive the process.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._sessions: dict[str, SessionEntity] = {}

    def add(self, session: SessionEntity) -> None:
        with self._lock:
            self._sessions[session["token"]] = session.copy()

    def get(self, token: str) -> Optional[SessionEntity]:
        with self._lock:
            session = self._sessions.get(token)
            return None if session is None else session.copy()

    def touch(self, token: str, seen_at: datetime) -> None:
        with self._lock:
            session = self._sessions.get(token)
            if session is not None:
                session["last_seen_at"] = seen_at

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def delete_for_user(self, user_id: int) -> int:
        with self._lock:
            doomed = [t for t, s in self._sessions.items() if s["user_id"] == user_id]
            for token in doomed:
                del self._sessions[token]
            return len(doomed)

    def delete_expired(self, created_before: datetime, seen_before: datetime) -> int:
        with self._lock:
            doomed = [
                t
                for t, s in self._sessions.items()
                if s["created_at"] <= created_before or s["last_seen_at"] <= seen_before
            ]
            for token in doomed:
                del self._sessions[token]
            return len(doomed)


# PUBLIC_INTERFACE
class SessionManager:
    """
    Issue and validate opaque session tokens.

    Transport-agnostic: it only knows tokens and user ids. A session expires
    once it has been idle for ``idle_timeout`` or has existed for
    ``absolute_timeout``, whichever comes first. Expired sessions of other
    users are swept from the store at most once per ``purge_interval``.
    """

    def __init__(
        self,
        users: UserDirectory,
        credentials: CredentialStore,
        store: SessionStore,
        idle_timeout: timedelta = timedelta(days=1),
        absolute_timeout: timedelta = timedelta(days=7),
        purge_interval: timedelta = timedelta(days=1),
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._credentials = credentials
        self._store = store
        self._idle_timeout = idle_timeout
        self._absolute_timeout = absolute_timeout
        self._clock = clock
        self._dummy_hash: Optional[str] = None
        self._purge_interval = purge_interval
        self._purge_lock = Lock()
        self._last_purge = clock()

    @property
    def absolute_timeout(self) -> timedelta:
        return self._absolute_timeout

    def _is_expired(self, session: SessionEntity, now: datetime) -> bool:
        return (
            now - session["created_at"] >= self._absolute_timeout
            or now - session["last_seen_at"] >= self._idle_timeout
        )

    def _delete_expired(self, now: datetime) -> int:
        return self._store.delete_expired(now - self._absolute_timeout, now - self._idle_timeout)

    def _maybe_purge(self, now: datetime) -> None:
        with self._purge_lock:
            if now - self._last_purge < self._purge_interval:
                return
            self._last_purge = now
        purged = self._delete_expired(now)
        if purged:
            logger.info("Purged %d expired session(s)", purged)

    def _burn_verification(self, password: str) -> None:
        # Unknown usernames cost the same hash work as known ones.
        if self._dummy_hash is None:
            self._dummy_hash = self._credentials.hash(secrets.token_hex(8))
        self._credentials.verify(password, self._dummy_hash)

    def create_session(self, user_id: int) -> str:
        """Open a new session for an already authenticated user."""
        now = self._clock()
        self._maybe_purge(now)
        token = secrets.token_urlsafe(TOKEN_BYTES)
        self._store.add(
            {"token": token, "user_id": user_id, "created_at": now, "last_seen_at": now}
        )
        return token

    def login(self, username: str, password: str) -> str:
        """
        Authenticate and open a session.

        Raises:
            InvalidCredentials: unknown username or wrong password.
        """
        user = self._users.find_by_username(username)
        if user is None:
            self._burn_verification(password)
            logger.info("Login failed for username=%r", username)
            raise InvalidCredentials()
        if not self._credentials.verify(password, user["password_hash"]):
            logger.info("Login failed for username=%r", username)
            raise InvalidCredentials()
        return self.create_session(user["id"])

    def validate(self, token: Optional[str]) -> Optional[int]:
        """Return the user id behind ``token``, or None when it is not a live session."""
        if not token:
            return None
        now = self._clock()
        self._maybe_purge(now)
        session = self._store.get(token)
        if session is None:
            return None
        if self._is_expired(session, now):
            self._store.delete(token)
            logger.debug("Session for user_id=%s expired", session["user_id"])
            return None
        self._store.touch(token, now)
        return session["user_id"]

    def logout(self, token: Optional[str]) -> None:
        """End a session. Unknown or already invalid tokens are ignored."""
        if token:
            self._store.delete(token)

    def revoke_user(self, user_id: int) -> int:
        return self._store.delete_for_user(user_id)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> str:
        """
        Replace a user's password, end all of their sessions and return a
        token for a fresh one.

        Raises:
            ValidationError: the current password is wrong.
            UserNotFound: unknown user id.
        """
        user = self._users.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if not self._credentials.verify(current_password, user["password_hash"]):
            raise ValidationError("Current password is incorrect")
        self._users.set_password(user_id, new_password)
        revoked = self.revoke_user(user_id)
        logger.info("Password changed for user_id=%s, revoked %d session(s)", user_id, revoked)
        return self.create_session(user_id)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._purge_lock:
            self._last_purge = now
        return self._delete_expired(now)


# PUBLIC_INTERFACE
def get_session_store(settings: Settings) -> SessionStore:
    """Factory to return the configured session store based on settings."""
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteSessionStore

        return SQLiteSessionStore(settings.sqlite_db_path)
    return InMemorySessionStore()
