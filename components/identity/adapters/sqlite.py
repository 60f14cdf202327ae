from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from ..contracts import User, UserRepository
from ..errors import ConcurrencyConflict, UserNotFound, UsernameTaken

log = logging.getLogger("identity.sqlite")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    normalized_username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    roles TEXT NOT NULL DEFAULT '[]',
    security_stamp TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
)
"""

_COLUMNS = ("id", "username", "normalized_username", "password_hash", "roles", "security_stamp", "is_active", "created_at")
_MUTABLE = {"password_hash", "roles", "is_active"}


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        normalized_username=row["normalized_username"],
        password_hash=row["password_hash"],
        roles=json.loads(row["roles"]),
        security_stamp=row["security_stamp"],
        is_active=bool(row["is_active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _encode(field: str, value: Any) -> Any:
    if field == "roles":
        return json.dumps(sorted(value))
    if field == "is_active":
        return int(bool(value))
    return value


class SqliteUserRepository(UserRepository):
    """
    SQLite-backed repository.
    Uniqueness comes from the UNIQUE index on normalized_username; stamp checks
    are a single conditional UPDATE, so they stay atomic across connections.
    """

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        with self._lock:
            self._conn.execute(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _fetch_one(self, sql: str, params: tuple) -> Optional[User]:
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return _row_to_user(row) if row else None

    def get_by_normalized_username(self, normalized_username: str) -> Optional[User]:
        return self._fetch_one("SELECT * FROM users WHERE normalized_username = ?", (normalized_username,))

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def insert(self, user: User) -> User:
        values = (
            user.id,
            user.username,
            user.normalized_username,
            user.password_hash,
            _encode("roles", user.roles),
            user.security_stamp,
            _encode("is_active", user.is_active),
            user.created_at.isoformat(),
        )
        placeholders = ",".join("?" for _ in _COLUMNS)
        try:
            with self._lock:
                self._conn.execute(f"INSERT INTO users ({','.join(_COLUMNS)}) VALUES ({placeholders})", values)
        except sqlite3.IntegrityError as ex:
            log.info("insert_rejected normalized_username=%s", user.normalized_username)
            raise UsernameTaken(user.username) from ex
        return user

    def compare_and_swap(self, user_id: str, expected_stamp: str, changes: Dict[str, Any]) -> User:
        unknown = set(changes) - _MUTABLE
        if unknown:
            raise ValueError(f"Unsupported fields for update: {sorted(unknown)}")
        new_stamp = str(uuid.uuid4())
        assignments = [f"{k} = ?" for k in changes] + ["security_stamp = ?"]
        params = [_encode(k, v) for k, v in changes.items()] + [new_stamp, user_id, expected_stamp]
        sql = f"UPDATE users SET {', '.join(assignments)} WHERE id = ? AND security_stamp = ?"
        with self._lock:
            cur = self._conn.execute(sql, params)
            if cur.rowcount == 1:
                return self.get_by_id(user_id)
            exists = self._conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
        if exists is None:
            raise UserNotFound(user_id)
        raise ConcurrencyConflict(user_id)

    def ping(self) -> bool:
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            log.warning("ping_failed path=%s", self.path, exc_info=True)
            return False
