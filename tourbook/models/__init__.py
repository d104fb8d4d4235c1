"""Database models module."""
from .base import Base
from .user import Role, User

__all__ = [
    "Base",
    "Role",
    "User",
]
