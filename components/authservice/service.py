from __future__ import annotations
import logging
import time
from typing import Iterable, Optional

from components.identity import (
    ConcurrencyConflict, CredentialStore, User, UserNotFound, UsernameTaken, WeakPassword,
)

from .config import AuthSettings
from .contracts import (
    AuthErrorCodes, ChangePasswordRequest, ClaimsPrincipal, ClockPort, IssuedToken,
    LoginRequest, RegisterRequest,
)
from .crypto import HS256TokenSigner
from .errors import make_auth_error, make_error
from .issuer import TokenIssuer
from .validator import TokenValidator

log = logging.getLogger("authservice.service")

PASSWORD_CHANGE_ATTEMPTS = 2


class SystemClock(ClockPort):
    def now_utc_ts(self) -> int:
        return int(time.time())


class AuthService:
    """Registration, login and credential changes; issues tokens on success."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        issuer: TokenIssuer,
        validator: TokenValidator,
        clock: Optional[ClockPort] = None,
    ):
        self.store = store
        self.issuer = issuer
        self.validator = validator
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(cls, settings: AuthSettings, *, store: CredentialStore, clock: Optional[ClockPort] = None) -> "AuthService":
        """Build signer/issuer/validator from settings. Raises SigningKeyError on a weak or missing key."""
        signer = HS256TokenSigner.from_secret(
            settings.secret_bytes(), kid=settings.kid, min_secret_bytes=settings.min_secret_bytes
        )
        return cls(
            store=store,
            issuer=TokenIssuer(
                signer=signer,
                issuer=settings.issuer,
                audience=settings.audience,
                lifetime_seconds=settings.token_lifetime_seconds,
            ),
            validator=TokenValidator(signer=signer, issuer=settings.issuer, audience=settings.audience),
            clock=clock,
        )

    # --------- Core operations ----------
    def register(self, req: RegisterRequest, roles: Iterable[str] = ()) -> IssuedToken:
        try:
            user = self.store.create_user(req.username, req.password, roles)
        except UsernameTaken:
            raise make_error("CONFLICT", AuthErrorCodes.USERNAME_TAKEN, "Username is already taken")
        except WeakPassword as ex:
            raise make_error(
                "VALIDATION", AuthErrorCodes.WEAK_PASSWORD, "Password does not meet policy",
                details={"failures": ex.failures},
            )
        return self.issuer.issue(user, self.clock.now_utc_ts())

    def login(self, req: LoginRequest) -> IssuedToken:
        user = self._authenticate(req.username, req.password)
        return self.issuer.issue(user, self.clock.now_utc_ts())

    def change_password(self, principal: ClaimsPrincipal, req: ChangePasswordRequest) -> IssuedToken:
        for attempt in range(1, PASSWORD_CHANGE_ATTEMPTS + 1):
            user = self._user_for(principal)
            if not self.store.verify_password(user, req.current_password):
                raise make_auth_error(AuthErrorCodes.BAD_CREDENTIALS, "Current password is incorrect")
            try:
                updated = self.store.change_password(user, req.new_password)
            except WeakPassword as ex:
                raise make_error(
                    "VALIDATION", AuthErrorCodes.WEAK_PASSWORD, "Password does not meet policy",
                    details={"failures": ex.failures},
                )
            except ConcurrencyConflict:
                log.info("password_change_conflict user_id=%s attempt=%d", user.id, attempt)
                continue
            return self.issuer.issue(updated, self.clock.now_utc_ts())
        raise make_error("CONFLICT", AuthErrorCodes.CONCURRENCY_CONFLICT, "User was modified concurrently; retry")

    def set_roles(self, username: str, roles: Iterable[str]) -> User:
        try:
            user = self.store.find_by_username(username)
            return self.store.set_roles(user, roles)
        except UserNotFound:
            raise make_error("NOT_FOUND", AuthErrorCodes.USER_NOT_FOUND, "User not found")
        except ConcurrencyConflict:
            raise make_error("CONFLICT", AuthErrorCodes.CONCURRENCY_CONFLICT, "User was modified concurrently; retry")

    # --------- Helpers ----------
    def _authenticate(self, username: str, password: str) -> User:
        # Same error for unknown user, wrong password and inactive user.
        try:
            user = self.store.find_by_username(username)
        except UserNotFound:
            self.store.verify_decoy(password)
            log.info("login_failed reason=unknown_user")
            raise make_auth_error(AuthErrorCodes.BAD_CREDENTIALS, "Invalid username or password")
        if not self.store.verify_password(user, password):
            log.info("login_failed reason=bad_password user_id=%s", user.id)
            raise make_auth_error(AuthErrorCodes.BAD_CREDENTIALS, "Invalid username or password")
        if not user.is_active:
            log.info("login_failed reason=inactive user_id=%s", user.id)
            raise make_auth_error(AuthErrorCodes.BAD_CREDENTIALS, "Invalid username or password")
        return self.store.rehash_if_needed(user, password)

    def _user_for(self, principal: ClaimsPrincipal) -> User:
        try:
            return self.store.find_by_id(principal.subject)
        except UserNotFound:
            raise make_auth_error(AuthErrorCodes.UNAUTHENTICATED, "Authentication required")
