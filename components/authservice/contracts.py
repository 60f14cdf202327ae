from __future__ import annotations
import enum
from typing import Any, Dict, FrozenSet, Iterable, List, Literal, Optional, Protocol
from pydantic import BaseModel, ConfigDict, Field, constr

# ---------- Unified Wire Format (UWF) ----------
class ErrorPayload(BaseModel):
    type: Literal["AUTH_ERROR","VALIDATION","NOT_FOUND","CONFLICT","INTERNAL"]
    code: constr(strip_whitespace=True, min_length=1)
    message: constr(strip_whitespace=True, min_length=1)
    details: Optional[Dict[str, Any]] = None

class MetaPayload(BaseModel):
    trace_id: Optional[str] = None
    request_id: Optional[str] = None
    duration_ms: Optional[int] = None

class UWFResponse(BaseModel):
    ok: bool
    result: Optional[Any] = None
    error: Optional[ErrorPayload] = None
    meta: MetaPayload = Field(default_factory=MetaPayload)

# ---------- Token Models ----------
class AccessTokenClaims(BaseModel):
    sub: str
    roles: List[str] = Field(default_factory=list)
    iat: int
    exp: int
    iss: str
    aud: str
    jti: Optional[str] = None
    unique_name: Optional[str] = None

class ClaimsPrincipal(BaseModel):
    """Authenticated identity derived from a validated token."""
    model_config = ConfigDict(frozen=True)

    subject: str
    roles: FrozenSet[str] = Field(default_factory=frozenset)
    username: Optional[str] = None
    issued_at: int
    expires_at: int
    token_id: Optional[str] = None

    def in_any_role(self, required: Iterable[str]) -> bool:
        return bool(self.roles & set(required))

class IssuedToken(BaseModel):
    access_token: str
    token_type: Literal["Bearer"] = "Bearer"
    expires_in: int
    expires_at: int

class InvalidReason(str, enum.Enum):
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    BAD_ISSUER = "bad_issuer"
    BAD_AUDIENCE = "bad_audience"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"

class ValidationResult(BaseModel):
    principal: Optional[ClaimsPrincipal] = None
    reason: Optional[InvalidReason] = None

    @property
    def ok(self) -> bool:
        return self.principal is not None

# ---------- Ports (Contracts) ----------
class TokenSignerPort(Protocol):
    """
    Contract for compact JWS signing/verification with key ids.
    """
    def sign(self, claims: Dict[str, Any], *, now: int) -> str: ...
    def verify(self, token: str, *, now: int) -> Dict[str, Any]: ...
    def active_kid(self, *, now: int) -> Optional[str]: ...
    def list_kids(self) -> List[str]: ...

class ClockPort(Protocol):
    def now_utc_ts(self) -> int: ...

# ---------- Service I/O ----------
class CredentialsRequest(BaseModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=256)
    password: constr(min_length=1, max_length=1024)

class RegisterRequest(CredentialsRequest):
    pass

class LoginRequest(CredentialsRequest):
    pass

class ChangePasswordRequest(BaseModel):
    current_password: constr(min_length=1, max_length=1024)
    new_password: constr(min_length=1, max_length=1024)

class SetRolesRequest(BaseModel):
    roles: List[constr(strip_whitespace=True, min_length=1, max_length=128)]

class MeResponse(BaseModel):
    principal: ClaimsPrincipal

# ---------- Errors ----------
class AuthErrorCodes:
    BAD_CREDENTIALS = "BAD_CREDENTIALS"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    USERNAME_TAKEN = "USERNAME_TAKEN"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
