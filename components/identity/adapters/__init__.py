from .inmemory import InMemoryUserRepository
from .sqlite import SqliteUserRepository

__all__ = ["InMemoryUserRepository", "SqliteUserRepository"]
