from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    A registered user as held by the user directory backends.

    Fields:
    - id: Unique integer identifier, assigned sequentially
    - username: Unique login name (exact, case-sensitive match)
    - password_hash: Encoded salted hash produced by the credential store
    - created_at: UTC creation timestamp
    """

    id: int
    username: str
    password_hash: str
    created_at: datetime


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A task owned by exactly one user.

    Fields:
    - id: Unique integer identifier, never reused
    - title: Short title (1..100 chars, trimmed on input via schemas)
    - completed: Boolean completion flag
    - user_id: Id of the owning user
    - created_at: UTC creation timestamp, immutable
    """

    id: int
    title: str
    completed: bool
    user_id: int
    created_at: datetime


class SessionEntity(TypedDict):
    """An authenticated session keyed by its opaque token."""

    token: str
    user_id: int
    created_at: datetime
    last_seen_at: datetime
