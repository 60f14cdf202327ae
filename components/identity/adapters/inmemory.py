from __future__ import annotations

import threading
import uuid
from typing import Any, Dict, Optional

from ..contracts import User, UserRepository
from ..errors import ConcurrencyConflict, UserNotFound, UsernameTaken


class InMemoryUserRepository(UserRepository):
    """Thread-safe in-memory repository with a coarse-grained lock.

    For single-process dev/testing. Indexed by id and by normalized username.
    """

    def __init__(self):
        self._by_id: Dict[str, User] = {}
        self._id_by_name: Dict[str, str] = {}
        self._lock = threading.RLock()

    def get_by_normalized_username(self, normalized_username: str) -> Optional[User]:
        with self._lock:
            user_id = self._id_by_name.get(normalized_username)
            return self._by_id.get(user_id) if user_id else None

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._by_id.get(user_id)

    def insert(self, user: User) -> User:
        with self._lock:
            if user.normalized_username in self._id_by_name:
                raise UsernameTaken(user.username)
            self._by_id[user.id] = user
            self._id_by_name[user.normalized_username] = user.id
            return user

    def compare_and_swap(self, user_id: str, expected_stamp: str, changes: Dict[str, Any]) -> User:
        with self._lock:
            current = self._by_id.get(user_id)
            if current is None:
                raise UserNotFound(user_id)
            if current.security_stamp != expected_stamp:
                raise ConcurrencyConflict(user_id)
            updated = current.model_copy(update={**changes, "security_stamp": str(uuid.uuid4())})
            self._by_id[user_id] = updated
            return updated

    def ping(self) -> bool:
        return True
