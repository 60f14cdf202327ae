from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional, Protocol
from pydantic import BaseModel, ConfigDict, Field, constr, field_validator


def normalize_username(username: str) -> str:
    """Canonical form used for uniqueness and lookup (case-insensitive)."""
    return username.strip().casefold()


def normalize_roles(roles: Iterable[str]) -> FrozenSet[str]:
    return frozenset(r.strip() for r in roles if r and r.strip())


# ---------- Domain Models ----------
class User(BaseModel):
    """Identity record. Instances are snapshots; mutations go through the store."""
    model_config = ConfigDict(frozen=True)

    id: str
    username: constr(strip_whitespace=True, min_length=1)
    normalized_username: str
    password_hash: str = Field(repr=False)
    roles: FrozenSet[str] = Field(default_factory=frozenset)
    security_stamp: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("roles", mode="before")
    @classmethod
    def _coerce_roles(cls, v: Any) -> FrozenSet[str]:
        return normalize_roles(v or ())

    def has_any_role(self, required: Iterable[str]) -> bool:
        return bool(self.roles & set(required))


class UserView(BaseModel):
    """Public projection of a user (no hash, no stamp)."""
    id: str
    username: str
    roles: list[str]
    is_active: bool

    @classmethod
    def of(cls, user: User) -> "UserView":
        return cls(id=user.id, username=user.username, roles=sorted(user.roles), is_active=user.is_active)


# ---------- Ports (Contracts) ----------
class UserRepository(Protocol):
    """
    Persistence contract for identity records.
    Backends must provide a unique constraint on the normalized username and an
    atomic compare-and-swap on the security stamp.
    """
    def get_by_normalized_username(self, normalized_username: str) -> Optional[User]: ...
    def get_by_id(self, user_id: str) -> Optional[User]: ...
    def insert(self, user: User) -> User: ...
    def compare_and_swap(self, user_id: str, expected_stamp: str, changes: Dict[str, Any]) -> User: ...
    def ping(self) -> bool: ...


class PasswordHasherPort(Protocol):
    def hash(self, plaintext: str) -> str: ...
    def verify(self, encoded: str, plaintext: str) -> bool: ...
    def needs_rehash(self, encoded: str) -> bool: ...
