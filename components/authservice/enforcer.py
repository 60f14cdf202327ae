from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable, Iterable, List, Optional

from fastapi import Request, Response
from pydantic import BaseModel, Field, field_validator
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from .contracts import AuthErrorCodes, ClaimsPrincipal, ErrorPayload, MetaPayload, UWFResponse
from .errors import InvalidToken
from .validator import TokenValidator

log = logging.getLogger("authservice.enforcer")

BEARER_PREFIX = "bearer "


class AccessRule(BaseModel):
    """Access requirement for the operations matching `path_pattern` and `methods`.

    An empty `roles` list means "any authenticated caller".
    """
    name: str = Field(..., description="Unique rule name")
    path_pattern: str = Field(..., description="Regex matched against the request path")
    methods: Optional[List[str]] = Field(None, description="HTTP methods; None means all")
    roles: List[str] = Field(default_factory=list, description="Caller needs at least one of these roles")

    @field_validator("methods")
    @classmethod
    def normalize_methods(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [m.upper() for m in v]

    @field_validator("path_pattern")
    @classmethod
    def compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as ex:
            raise ValueError(f"invalid path_pattern: {ex}") from ex
        return v

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method.upper() not in self.methods:
            return False
        return re.search(self.path_pattern, path) is not None


class AccessTable:
    """Operation -> requirement table, filled in when routes are registered.

    Lookups return the first matching rule in declaration order.
    """

    def __init__(self, rules: Optional[Iterable[AccessRule]] = None):
        self._rules: List[AccessRule] = []
        self._lock = threading.Lock()
        for r in rules or ():
            self.add(r)

    def add(self, rule: AccessRule) -> AccessRule:
        with self._lock:
            if any(r.name == rule.name for r in self._rules):
                raise ValueError(f"Duplicate access rule: {rule.name}")
            self._rules = [*self._rules, rule]
        return rule

    def declare(self, name: str, path_pattern: str, *, methods: Optional[List[str]] = None, roles: Iterable[str] = ()) -> AccessRule:
        return self.add(AccessRule(name=name, path_pattern=path_pattern, methods=methods, roles=list(roles)))

    def lookup(self, method: str, path: str) -> Optional[AccessRule]:
        for r in self._rules:
            if r.matches(method, path):
                return r
        return None

    @property
    def rules(self) -> List[AccessRule]:
        return list(self._rules)


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def _reject(status_code: int, code: str, message: str, request: Request) -> JSONResponse:
    body = UWFResponse(
        ok=False,
        error=ErrorPayload(type="AUTH_ERROR", code=code, message=message),
        meta=MetaPayload(request_id=getattr(request.state, "request_id", None)),
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


class AccessEnforcerMiddleware(BaseHTTPMiddleware):
    """Authenticates, then authorizes, every request covered by an access rule.

    Requests no rule covers pass through untouched. On success the principal is
    stored on `request.state.principal`.
    """

    def __init__(
        self,
        app,
        validator: TokenValidator,
        table: AccessTable,
        now: Optional[Callable[[], int]] = None,
        header: str = "Authorization",
    ):
        super().__init__(app)
        self.validator = validator
        self.table = table
        self.header = header
        self._now = now or (lambda: int(time.time()))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rule = self.table.lookup(request.method, request.url.path)
        if rule is None:
            return await call_next(request)

        token = extract_bearer(request.headers.get(self.header))
        if token is None:
            log.info("auth_rejected rule=%s reason=missing_token path=%s", rule.name, request.url.path)
            return _reject(401, AuthErrorCodes.UNAUTHENTICATED, "Authentication required", request)

        try:
            principal: ClaimsPrincipal = self.validator.validate(token, self._now())
        except InvalidToken as ex:
            log.info("auth_rejected rule=%s reason=%s path=%s", rule.name, ex.reason.value, request.url.path)
            return _reject(401, AuthErrorCodes.UNAUTHENTICATED, "Authentication required", request)

        request.state.principal = principal

        if rule.roles and not principal.in_any_role(rule.roles):
            log.info("access_denied rule=%s sub=%s required=%s", rule.name, principal.subject, rule.roles)
            return _reject(403, AuthErrorCodes.FORBIDDEN, "Not enough privileges", request)

        return await call_next(request)
