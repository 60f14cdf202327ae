from .contracts import User, UserView, UserRepository, normalize_username
from .errors import IdentityError, UserNotFound, UsernameTaken, WeakPassword, ConcurrencyConflict
from .hashing import PasswordHasher, PasswordPolicy
from .service import CredentialStore
from .adapters import InMemoryUserRepository, SqliteUserRepository

__all__ = [
    "User",
    "UserView",
    "UserRepository",
    "normalize_username",
    "IdentityError",
    "UserNotFound",
    "UsernameTaken",
    "WeakPassword",
    "ConcurrencyConflict",
    "PasswordHasher",
    "PasswordPolicy",
    "CredentialStore",
    "InMemoryUserRepository",
    "SqliteUserRepository",
]
