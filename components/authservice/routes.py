from __future__ import annotations
from typing import List
from fastapi import APIRouter, Depends, Response
from components.identity import UserView
from .contracts import (
    ChangePasswordRequest, ClaimsPrincipal, LoginRequest, MeResponse, RegisterRequest,
    SetRolesRequest, UWFResponse,
)
from .deps import get_auth_service, get_principal
from .enforcer import AccessRule
from .errors import AuthServiceException

PREFIX = "/auth"
ADMIN_ROLE = "admin"

router = APIRouter(prefix=PREFIX, tags=["auth"])


def auth_access_rules(prefix: str = PREFIX) -> List[AccessRule]:
    """Access requirements for the routes below; declared alongside them."""
    p = prefix.rstrip("/")
    return [
        AccessRule(name="auth.me", path_pattern=rf"^{p}/me$", methods=["GET"]),
        AccessRule(name="auth.password", path_pattern=rf"^{p}/password$", methods=["POST"]),
        AccessRule(name="auth.roles", path_pattern=rf"^{p}/users/[^/]+/roles$", methods=["PUT"], roles=[ADMIN_ROLE]),
    ]


def _failed(response: Response, ex: AuthServiceException) -> UWFResponse:
    response.status_code = ex.status_code
    return UWFResponse(ok=False, error=ex.payload)


@router.post("/register", response_model=UWFResponse)
def register(req: RegisterRequest, response: Response, svc = Depends(get_auth_service)):
    try:
        token = svc.register(req)
        response.status_code = 201
        return UWFResponse(ok=True, result=token)
    except AuthServiceException as ex:
        return _failed(response, ex)

@router.post("/login", response_model=UWFResponse)
def login(req: LoginRequest, response: Response, svc = Depends(get_auth_service)):
    try:
        return UWFResponse(ok=True, result=svc.login(req))
    except AuthServiceException as ex:
        return _failed(response, ex)

@router.get("/me", response_model=UWFResponse)
def me(principal: ClaimsPrincipal = Depends(get_principal)):
    return UWFResponse(ok=True, result=MeResponse(principal=principal))

@router.post("/password", response_model=UWFResponse)
def change_password(
    req: ChangePasswordRequest,
    response: Response,
    principal: ClaimsPrincipal = Depends(get_principal),
    svc = Depends(get_auth_service),
):
    try:
        return UWFResponse(ok=True, result=svc.change_password(principal, req))
    except AuthServiceException as ex:
        return _failed(response, ex)

@router.put("/users/{username}/roles", response_model=UWFResponse)
def set_roles(
    username: str,
    req: SetRolesRequest,
    response: Response,
    principal: ClaimsPrincipal = Depends(get_principal),
    svc = Depends(get_auth_service),
):
    try:
        return UWFResponse(ok=True, result=UserView.of(svc.set_roles(username, req.roles)))
    except AuthServiceException as ex:
        return _failed(response, ex)
