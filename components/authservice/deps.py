from typing import Callable

from fastapi import Depends, FastAPI, HTTPException, Request, status

from .contracts import ClaimsPrincipal
from .service import AuthService


def set_auth_service(app: FastAPI, svc: AuthService) -> None:
    app.state.auth_service = svc


def get_auth_service(request: Request) -> AuthService:
    svc = getattr(request.app.state, "auth_service", None)
    if svc is None:
        raise RuntimeError("AuthService is not configured on this app")
    return svc


def get_principal(request: Request) -> ClaimsPrincipal:
    """
    Principal attached by AccessEnforcerMiddleware.
    Routes without an access rule never get one, so this fails closed with 401.
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_roles(*roles: str) -> Callable[..., ClaimsPrincipal]:
    """
    Dependency factory for handlers that check roles themselves:
      principal: ClaimsPrincipal = Depends(require_roles("admin"))
    """
    def _dep(principal: ClaimsPrincipal = Depends(get_principal)) -> ClaimsPrincipal:
        if roles and not principal.in_any_role(roles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough privileges")
        return principal

    return _dep
