from __future__ import annotations
from pydantic import ValidationError

from .contracts import AccessTokenClaims, ClaimsPrincipal, InvalidReason, TokenSignerPort, ValidationResult
from .errors import InvalidToken


class TokenValidator:
    """
    Stateless bearer token validation.

    Checks run in a fixed order and stop at the first failure:
    structure -> signature -> issuer -> audience -> time window [iat, exp).
    No store lookup happens here, so a user deactivated after issuance keeps a
    valid token until it expires.
    """

    def __init__(self, *, signer: TokenSignerPort, issuer: str, audience: str):
        self.signer = signer
        self.issuer = issuer
        self.audience = audience

    def validate(self, token: str, now: int) -> ClaimsPrincipal:
        now = int(now)
        payload = self.signer.verify(token, now=now)
        try:
            claims = AccessTokenClaims.model_validate(payload)
        except ValidationError as ex:
            raise InvalidToken(InvalidReason.MALFORMED, "claims do not match schema") from ex

        if claims.iss != self.issuer:
            raise InvalidToken(InvalidReason.BAD_ISSUER, f"issuer {claims.iss!r}")
        if claims.aud != self.audience:
            raise InvalidToken(InvalidReason.BAD_AUDIENCE, f"audience {claims.aud!r}")
        if now >= claims.exp:
            raise InvalidToken(InvalidReason.EXPIRED, f"expired at {claims.exp}")
        if now < claims.iat:
            raise InvalidToken(InvalidReason.NOT_YET_VALID, f"issued at {claims.iat}")

        return ClaimsPrincipal(
            subject=claims.sub,
            roles=frozenset(claims.roles),
            username=claims.unique_name,
            issued_at=claims.iat,
            expires_at=claims.exp,
            token_id=claims.jti,
        )

    def try_validate(self, token: str, now: int) -> ValidationResult:
        try:
            return ValidationResult(principal=self.validate(token, now))
        except InvalidToken as ex:
            return ValidationResult(reason=ex.reason)
