from __future__ import annotations
from typing import List


class IdentityError(Exception):
    """Base class for credential store errors."""


class UserNotFound(IdentityError):
    def __init__(self, key: str):
        super().__init__(f"User not found: {key}")
        self.key = key


class UsernameTaken(IdentityError):
    def __init__(self, username: str):
        super().__init__(f"Username already taken: {username}")
        self.username = username


class WeakPassword(IdentityError):
    def __init__(self, failures: List[str]):
        super().__init__("Password does not meet policy: " + ", ".join(failures))
        self.failures = failures


class ConcurrencyConflict(IdentityError):
    """The security stamp changed between read and write; re-read and retry."""

    def __init__(self, user_id: str):
        super().__init__(f"Concurrent modification of user {user_id}")
        self.user_id = user_id
