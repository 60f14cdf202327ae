from .service import AuthService, SystemClock
from .crypto import HS256TokenSigner, SigningKey
from .issuer import TokenIssuer
from .validator import TokenValidator
from .config import AuthSettings
from .contracts import ClaimsPrincipal, InvalidReason, IssuedToken
from .errors import AuthConfigError, AuthServiceException, InvalidToken, SigningKeyError
from .enforcer import AccessEnforcerMiddleware, AccessRule, AccessTable
from .deps import set_auth_service, get_auth_service, get_principal, require_roles
from .routes import router as auth_router, auth_access_rules

__all__ = [
    "AuthService",
    "SystemClock",
    "HS256TokenSigner",
    "SigningKey",
    "TokenIssuer",
    "TokenValidator",
    "AuthSettings",
    "ClaimsPrincipal",
    "InvalidReason",
    "IssuedToken",
    "AuthConfigError",
    "AuthServiceException",
    "InvalidToken",
    "SigningKeyError",
    "AccessEnforcerMiddleware",
    "AccessRule",
    "AccessTable",
    "set_auth_service",
    "get_auth_service",
    "get_principal",
    "require_roles",
    "auth_router",
    "auth_access_rules",
]
