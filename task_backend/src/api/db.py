from __future__ import annotations

import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, List, Optional

from .errors import DuplicateUsername, TaskNotFound, UserNotFound
from .models import SessionEntity, TaskEntity, UserEntity
from .repositories import TaskRepository, UserDirectory, utcnow
from .schemas import TaskCreate, TaskUpdate
from .security import CredentialStore
from .sessions import SessionStore


@dataclass(frozen=True)
class _UserCols:
    table: str = "users"
    id: str = "id"
    username: str = "username"
    password_hash: str = "password_hash"
    created_at: str = "created_at"


@dataclass(frozen=True)
class _TaskCols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    completed: str = "completed"
    user_id: str = "user_id"
    created_at: str = "created_at"


@dataclass(frozen=True)
class _SessionCols:
    table: str = "sessions"
    token: str = "token"
    user_id: str = "user_id"
    created_at: str = "created_at"
    last_seen_at: str = "last_seen_at"


_USERS = _UserCols()
_TASKS = _TaskCols()
_SESSIONS = _SessionCols()


def _ts(value: datetime) -> str:
    # Fixed-width ISO text so that string comparison in SQL matches time order.
    return value.isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


class _SQLiteStore(ABC):
    """
    Shared connection handling. Each operation runs in its own connection
    and transaction.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @abstractmethod
    def _init_db(self) -> None:
        """Create the tables this store needs."""


class SQLiteUserDirectory(_SQLiteStore, UserDirectory):
    """
    SQLite-backed user directory. Usernames are UNIQUE with the default
    BINARY collation, i.e. exact case-sensitive matching.
    """

    def __init__(self, db_path: str, credentials: CredentialStore) -> None:
        UserDirectory.__init__(self, credentials)
        _SQLiteStore.__init__(self, db_path)

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_USERS.table} (
                    {_USERS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_USERS.username} TEXT NOT NULL UNIQUE,
                    {_USERS.password_hash} TEXT NOT NULL,
                    {_USERS.created_at} TEXT NOT NULL
                )
                """
            )

    def _row_to_entity(self, row: sqlite3.Row) -> UserEntity:
        return {
            "id": int(row[_USERS.id]),
            "username": str(row[_USERS.username]),
            "password_hash": str(row[_USERS.password_hash]),
            "created_at": _parse_ts(row[_USERS.created_at]),
        }

    def _select(self, conn: sqlite3.Connection, column: str, value: object) -> Optional[UserEntity]:
        row = conn.execute(
            f"SELECT * FROM {_USERS.table} WHERE {column} = ?", (value,)
        ).fetchone()
        return self._row_to_entity(row) if row else None

    def create_user(self, username: str, password: str) -> UserEntity:
        password_hash = self._credentials.hash(password)
        with self._conn() as conn:
            try:
                cur = conn.execute(
                    f"""
                    INSERT INTO {_USERS.table} ({_USERS.username}, {_USERS.password_hash}, {_USERS.created_at})
                    VALUES (?, ?, ?)
                    """,
                    (username, password_hash, _ts(utcnow())),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateUsername() from e
            user = self._select(conn, _USERS.id, cur.lastrowid)
            assert user is not None
            return user

    def find_by_username(self, username: str) -> Optional[UserEntity]:
        with self._conn() as conn:
            return self._select(conn, _USERS.username, username)

    def find_by_id(self, user_id: int) -> Optional[UserEntity]:
        with self._conn() as conn:
            return self._select(conn, _USERS.id, user_id)

    def set_password(self, user_id: int, password: str) -> UserEntity:
        password_hash = self._credentials.hash(password)
        with self._conn() as conn:
            cur = conn.execute(
                f"UPDATE {_USERS.table} SET {_USERS.password_hash} = ? WHERE {_USERS.id} = ?",
                (password_hash, user_id),
            )
            if cur.rowcount == 0:
                raise UserNotFound()
            user = self._select(conn, _USERS.id, user_id)
            assert user is not None
            return user


class SQLiteTaskRepository(_SQLiteStore, TaskRepository):
    """
    Lightweight SQLite repository implementing the TaskRepository interface.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TASKS.table} (
                    {_TASKS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_TASKS.title} TEXT NOT NULL,
                    {_TASKS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_TASKS.user_id} INTEGER NOT NULL REFERENCES {_USERS.table}({_USERS.id}),
                    {_TASKS.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_TASKS.table}_user_id ON {_TASKS.table}({_TASKS.user_id})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": int(row[_TASKS.id]),
            "title": str(row[_TASKS.title]),
            "completed": bool(row[_TASKS.completed]),
            "user_id": int(row[_TASKS.user_id]),
            "created_at": _parse_ts(row[_TASKS.created_at]),
        }

    def _select_owned(self, conn: sqlite3.Connection, user_id: int, task_id: int) -> TaskEntity:
        row = conn.execute(
            f"SELECT * FROM {_TASKS.table} WHERE {_TASKS.id} = ? AND {_TASKS.user_id} = ?",
            (task_id, user_id),
        ).fetchone()
        if not row:
            raise TaskNotFound()
        return self._row_to_entity(row)

    def list(self, user_id: int) -> List[TaskEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_TASKS.table} WHERE {_TASKS.user_id} = ? ORDER BY {_TASKS.id} ASC",
                (user_id,),
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def create(self, user_id: int, data: TaskCreate) -> TaskEntity:
        with self._conn() as conn:
            try:
                cur = conn.execute(
                    f"""
                    INSERT INTO {_TASKS.table} ({_TASKS.title}, {_TASKS.completed}, {_TASKS.user_id}, {_TASKS.created_at})
                    VALUES (?, ?, ?, ?)
                    """,
                    (data.title, 1 if data.completed else 0, user_id, _ts(utcnow())),
                )
            except sqlite3.IntegrityError as e:
                # Foreign key violation: the owner does not exist.
                raise UserNotFound() from e
            return self._select_owned(conn, user_id, int(cur.lastrowid))

    def update(self, user_id: int, task_id: int, data: TaskUpdate) -> TaskEntity:
        assignments = []
        params: list = []
        if "title" in data.model_fields_set:
            assignments.append(f"{_TASKS.title} = ?")
            params.append(data.title)
        if "completed" in data.model_fields_set:
            assignments.append(f"{_TASKS.completed} = ?")
            params.append(1 if data.completed else 0)

        with self._conn() as conn:
            if assignments:
                cur = conn.execute(
                    f"""
                    UPDATE {_TASKS.table} SET {', '.join(assignments)}
                    WHERE {_TASKS.id} = ? AND {_TASKS.user_id} = ?
                    """,
                    [*params, task_id, user_id],
                )
                if cur.rowcount == 0:
                    raise TaskNotFound()
            return self._select_owned(conn, user_id, task_id)

    def delete(self, user_id: int, task_id: int) -> None:
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_TASKS.table} WHERE {_TASKS.id} = ? AND {_TASKS.user_id} = ?",
                (task_id, user_id),
            )
            if cur.rowcount == 0:
                raise TaskNotFound()


class SQLiteSessionStore(_SQLiteStore, SessionStore):
    """
    Durable session store; sessions survive process restarts.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_SESSIONS.table} (
                    {_SESSIONS.token} TEXT PRIMARY KEY,
                    {_SESSIONS.user_id} INTEGER NOT NULL,
                    {_SESSIONS.created_at} TEXT NOT NULL,
                    {_SESSIONS.last_seen_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_SESSIONS.table}_user_id ON {_SESSIONS.table}({_SESSIONS.user_id})"
            )

    def add(self, session: SessionEntity) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_SESSIONS.table} ({_SESSIONS.token}, {_SESSIONS.user_id},
                    {_SESSIONS.created_at}, {_SESSIONS.last_seen_at})
                VALUES (?, ?, ?, ?)
                """,
                (
                    session["token"],
                    session["user_id"],
                    _ts(session["created_at"]),
                    _ts(session["last_seen_at"]),
                ),
            )

    def get(self, token: str) -> Optional[SessionEntity]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {_SESSIONS.table} WHERE {_SESSIONS.token} = ?", (token,)
            ).fetchone()
            if not row:
                return None
            return {
                "token": str(row[_SESSIONS.token]),
                "user_id": int(row[_SESSIONS.user_id]),
                "created_at": _parse_ts(row[_SESSIONS.created_at]),
                "last_seen_at": _parse_ts(row[_SESSIONS.last_seen_at]),
            }

    def touch(self, token: str, seen_at: datetime) -> None:
        with self._conn() as conn:
            conn.execute(
                f"UPDATE {_SESSIONS.table} SET {_SESSIONS.last_seen_at} = ? WHERE {_SESSIONS.token} = ?",
                (_ts(seen_at), token),
            )

    def delete(self, token: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_SESSIONS.table} WHERE {_SESSIONS.token} = ?", (token,))
            return cur.rowcount > 0

    def delete_for_user(self, user_id: int) -> int:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_SESSIONS.table} WHERE {_SESSIONS.user_id} = ?", (user_id,))
            return cur.rowcount

    def delete_expired(self, created_before: datetime, seen_before: datetime) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                DELETE FROM {_SESSIONS.table}
                WHERE {_SESSIONS.created_at} <= ? OR {_SESSIONS.last_seen_at} <= ?
                """,
                (_ts(created_before), _ts(seen_before)),
            )
            return cur.rowcount
