from __future__ import annotations
import logging
import uuid

from components.identity import User

from .contracts import AccessTokenClaims, IssuedToken, TokenSignerPort

log = logging.getLogger("authservice.issuer")


class TokenIssuer:
    """Mints signed, time-bounded bearer tokens for a verified user."""

    def __init__(self, *, signer: TokenSignerPort, issuer: str, audience: str, lifetime_seconds: int):
        if lifetime_seconds <= 0:
            raise ValueError("lifetime_seconds must be positive")
        self.signer = signer
        self.issuer = issuer
        self.audience = audience
        self.lifetime_seconds = lifetime_seconds

    def issue(self, user: User, now: int) -> IssuedToken:
        now = int(now)
        claims = AccessTokenClaims(
            sub=user.id,
            roles=sorted(user.roles),
            iat=now,
            exp=now + self.lifetime_seconds,
            iss=self.issuer,
            aud=self.audience,
            jti=uuid.uuid4().hex,
            unique_name=user.username,
        )
        token = self.signer.sign(claims.model_dump(), now=now)
        log.debug("token_issued sub=%s jti=%s exp=%s", claims.sub, claims.jti, claims.exp)
        return IssuedToken(
            access_token=token,
            token_type="Bearer",
            expires_in=self.lifetime_seconds,
            expires_at=claims.exp,
        )
