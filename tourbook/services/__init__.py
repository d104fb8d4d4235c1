"""Services module."""
from .auth import auth_service
from .email import email_service
from .password_reset import password_reset_service

__all__ = [
    "auth_service",
    "email_service",
    "password_reset_service",
]
