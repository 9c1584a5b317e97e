from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import List, Optional

from .errors import DuplicateUsername, TaskNotFound, UserNotFound
from .models import TaskEntity, UserEntity
from .schemas import TaskCreate, TaskUpdate
from .security import CredentialStore
from .settings import Settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """
    Abstract repository contract for task storage backends.

    Every operation is scoped to the owning user. A task that exists but
    belongs to someone else is reported exactly like a missing one.
    """

    @abstractmethod
    def list(self, user_id: int) -> List[TaskEntity]:
        """Return the user's tasks in ascending id (insertion) order."""

    @abstractmethod
    def create(self, user_id: int, data: TaskCreate) -> TaskEntity:
        """Create and return a new task owned by ``user_id``."""

    @abstractmethod
    def update(self, user_id: int, task_id: int, data: TaskUpdate) -> TaskEntity:
        """
        Update the provided fields of one of the user's tasks.

        Raises:
            TaskNotFound: no task with that id exists for that user.
        """

    @abstractmethod
    def delete(self, user_id: int, task_id: int) -> None:
        """
        Delete one of the user's tasks.

        Raises:
            TaskNotFound: no task with that id exists for that user.
        """


# PUBLIC_INTERFACE
class UserDirectory(ABC):
    """Abstract contract for user storage backends."""

    def __init__(self, credentials: CredentialStore) -> None:
        self._credentials = credentials

    @abstractmethod
    def create_user(self, username: str, password: str) -> UserEntity:
        """
        Register a user, storing only the hashed password.

        Raises:
            DuplicateUsername: the exact username is already taken.
        """

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserEntity]:
        """Return the user with exactly this username, or None."""

    @abstractmethod
    def find_by_id(self, user_id: int) -> Optional[UserEntity]:
        """Return the user with this id, or None."""

    @abstractmethod
    def set_password(self, user_id: int, password: str) -> UserEntity:
        """
        Replace the user's password hash.

        Raises:
            UserNotFound: unknown user id.
        """


class InMemoryTaskRepository(TaskRepository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[int, TaskEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def _owned(self, user_id: int, task_id: int) -> TaskEntity:
        # Caller must hold the lock.
        item = self._items.get(task_id)
        if item is None or item["user_id"] != user_id:
            raise TaskNotFound()
        return item

    def list(self, user_id: int) -> List[TaskEntity]:
        with self._lock:
            # dicts keep insertion order and ids are allocated in that order
            return [t.copy() for t in self._items.values() if t["user_id"] == user_id]

    def create(self, user_id: int, data: TaskCreate) -> TaskEntity:
        with self._lock:
            entity: TaskEntity = {
                "id": self._allocate_id(),
                "title": data.title,
                "completed": data.completed,
                "user_id": user_id,
                "created_at": utcnow(),
            }
            self._items[entity["id"]] = entity
            return entity.copy()

    def update(self, user_id: int, task_id: int, data: TaskUpdate) -> TaskEntity:
        with self._lock:
            updated = self._owned(user_id, task_id).copy()
            # Update only provided fields
            if "title" in data.model_fields_set:
                updated["title"] = data.title  # type: ignore[typeddict-item]
            if "completed" in data.model_fields_set:
                updated["completed"] = data.completed  # type: ignore[typeddict-item]
            self._items[task_id] = updated
            return updated.copy()

    def delete(self, user_id: int, task_id: int) -> None:
        with self._lock:
            self._owned(user_id, task_id)
            del self._items[task_id]


class InMemoryUserDirectory(UserDirectory):
    """
    Thread-safe in-memory user directory.
    """

    def __init__(self, credentials: CredentialStore) -> None:
        super().__init__(credentials)
        self._lock = RLock()
        self._users: dict[int, UserEntity] = {}
        self._by_username: dict[str, int] = {}
        self._next_id = 1

    def create_user(self, username: str, password: str) -> UserEntity:
        # Hash outside the lock; it is deliberately slow.
        password_hash = self._credentials.hash(password)
        with self._lock:
            if username in self._by_username:
                raise DuplicateUsername()
            user: UserEntity = {
                "id": self._next_id,
                "username": username,
                "password_hash": password_hash,
                "created_at": utcnow(),
            }
            self._next_id += 1
            self._users[user["id"]] = user
            self._by_username[username] = user["id"]
            return user.copy()

    def find_by_username(self, username: str) -> Optional[UserEntity]:
        with self._lock:
            user_id = self._by_username.get(username)
            return None if user_id is None else self._users[user_id].copy()

    def find_by_id(self, user_id: int) -> Optional[UserEntity]:
        with self._lock:
            user = self._users.get(user_id)
            return None if user is None else user.copy()

    def set_password(self, user_id: int, password: str) -> UserEntity:
        password_hash = self._credentials.hash(password)
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFound()
            updated = user.copy()
            updated["password_hash"] = password_hash
            self._users[user_id] = updated
            return updated.copy()


# PUBLIC_INTERFACE
def get_task_repository(settings: Settings) -> TaskRepository:
    """
    Factory to return the configured task repository based on settings.
    - memory: InMemoryTaskRepository
    - sqlite: SQLiteTaskRepository (sqlite3 standard library)
    """
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteTaskRepository

        return SQLiteTaskRepository(settings.sqlite_db_path)
    return InMemoryTaskRepository()


# PUBLIC_INTERFACE
def get_user_directory(settings: Settings, credentials: CredentialStore) -> UserDirectory:
    """Factory to return the configured user directory based on settings."""
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteUserDirectory

        return SQLiteUserDirectory(settings.sqlite_db_path, credentials)
    return InMemoryUserDirectory(credentials)
