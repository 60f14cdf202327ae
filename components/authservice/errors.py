from __future__ import annotations
from typing import Optional
from .contracts import AuthErrorCodes, ErrorPayload, InvalidReason

class AuthServiceException(Exception):
    def __init__(self, payload: ErrorPayload):
        super().__init__(payload.message)
        self.payload = payload

    @property
    def status_code(self) -> int:
        return status_for(self.payload)

def make_auth_error(code: str, message: str, *, details: Optional[dict] = None) -> AuthServiceException:
    return AuthServiceException(
        ErrorPayload(type="AUTH_ERROR", code=code, message=message, details=details)
    )

def make_error(type_: str, code: str, message: str, *, details: Optional[dict] = None) -> AuthServiceException:
    return AuthServiceException(ErrorPayload(type=type_, code=code, message=message, details=details))

def status_for(payload: ErrorPayload) -> int:
    if payload.type == "AUTH_ERROR":
        return 403 if payload.code == AuthErrorCodes.FORBIDDEN else 401
    return {"VALIDATION": 422, "NOT_FOUND": 404, "CONFLICT": 409}.get(payload.type, 500)


class InvalidToken(Exception):
    """Token rejected by the validator. `reason` is for logs only, never for callers."""

    def __init__(self, reason: InvalidReason, detail: str = ""):
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)
        self.reason = reason


class AuthConfigError(Exception):
    """Fatal configuration problem; the process must not start serving."""


class SigningKeyError(AuthConfigError):
    pass
