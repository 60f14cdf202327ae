from __future__ import annotations
import logging
import uuid
from typing import Iterable, Optional

from .contracts import PasswordHasherPort, User, UserRepository, normalize_roles, normalize_username
from .errors import ConcurrencyConflict, UserNotFound
from .hashing import PasswordHasher, PasswordPolicy

log = logging.getLogger("identity.service")


class CredentialStore:
    """
    Credential storage and password verification on top of a UserRepository.

    Mutations (password, roles, deactivation) use the security stamp carried by the
    `user` argument as an optimistic-concurrency guard: the write commits only if
    the stored stamp still matches, otherwise ConcurrencyConflict is raised and the
    caller re-reads and retries.
    """

    def __init__(
        self,
        *,
        repo: UserRepository,
        hasher: Optional[PasswordHasherPort] = None,
        policy: Optional[PasswordPolicy] = None,
    ):
        self.repo = repo
        self.hasher = hasher or PasswordHasher()
        self.policy = policy or PasswordPolicy()
        self._decoy_hash: Optional[str] = None

    # --------- Lookups ----------
    def find_by_username(self, username: str) -> User:
        user = self.repo.get_by_normalized_username(normalize_username(username))
        if user is None:
            raise UserNotFound(username)
        return user

    def find_by_id(self, user_id: str) -> User:
        user = self.repo.get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def verify_password(self, user: User, plaintext: str) -> bool:
        return self.hasher.verify(user.password_hash, plaintext)

    def verify_decoy(self, plaintext: str) -> bool:
        """Run a full hash verification for a caller with no account. Always False.

        Keeps failed logins for unknown usernames as slow as those for known ones.
        """
        if self._decoy_hash is None:
            self._decoy_hash = self.hasher.hash(uuid.uuid4().hex)
        self.hasher.verify(self._decoy_hash, plaintext)
        return False

    # --------- Mutations ----------
    def create_user(self, username: str, plaintext: str, roles: Iterable[str] = ()) -> User:
        self.policy.check(plaintext)
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            normalized_username=normalize_username(username),
            password_hash=self.hasher.hash(plaintext),
            roles=normalize_roles(roles),
            security_stamp=str(uuid.uuid4()),
        )
        created = self.repo.insert(user)
        log.info("user_created user_id=%s roles=%s", created.id, sorted(created.roles))
        return created

    def change_password(self, user: User, new_plaintext: str) -> User:
        self.policy.check(new_plaintext)
        updated = self.repo.compare_and_swap(
            user.id, user.security_stamp, {"password_hash": self.hasher.hash(new_plaintext)}
        )
        log.info("password_changed user_id=%s", user.id)
        return updated

    def rehash_if_needed(self, user: User, plaintext: str) -> User:
        """Re-encode a verified password when the hasher settings changed since it was stored.

        Skips the policy check: the password is already in use. A concurrent
        change wins and the stored hash is left alone.
        """
        if not self.hasher.needs_rehash(user.password_hash):
            return user
        try:
            updated = self.repo.compare_and_swap(
                user.id, user.security_stamp, {"password_hash": self.hasher.hash(plaintext)}
            )
        except ConcurrencyConflict:
            log.info("password_rehash_skipped user_id=%s reason=conflict", user.id)
            return user
        log.info("password_rehashed user_id=%s", user.id)
        return updated

    def set_roles(self, user: User, roles: Iterable[str]) -> User:
        updated = self.repo.compare_and_swap(user.id, user.security_stamp, {"roles": normalize_roles(roles)})
        log.info("roles_changed user_id=%s roles=%s", user.id, sorted(updated.roles))
        return updated

    def deactivate(self, user: User) -> User:
        updated = self.repo.compare_and_swap(user.id, user.security_stamp, {"is_active": False})
        log.info("user_deactivated user_id=%s", user.id)
        return updated

    # --------- Health ----------
    def ping(self) -> bool:
        try:
            return bool(self.repo.ping())
        except Exception:
            log.warning("credential_store_ping_failed", exc_info=True)
            return False
