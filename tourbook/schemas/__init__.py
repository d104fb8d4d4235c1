"""Pydantic schemas module."""
from .auth import (
    SignupRequest,
    LoginRequest,
    PasswordChangeRequest,
    ForgotPasswordRequest,
    PasswordResetRequest,
    ProfileUpdate,
    AdminUserUpdate,
    UserResponse,
    UserEnvelope,
    UserListResponse,
    AuthResponse,
)
from .common import (
    StatusResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    # Auth
    "SignupRequest",
    "LoginRequest",
    "PasswordChangeRequest",
    "ForgotPasswordRequest",
    "PasswordResetRequest",
    "ProfileUpdate",
    "AdminUserUpdate",
    "UserResponse",
    "UserEnvelope",
    "UserListResponse",
    "AuthResponse",
    # Common
    "StatusResponse",
    "ErrorResponse",
    "HealthResponse",
]
