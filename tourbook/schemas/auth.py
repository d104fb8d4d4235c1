"""Authentication and account schemas."""
import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field, field_validator

from ..models.user import Role
from .common import BaseSchema

PASSWORD_MIN_LENGTH = 8
# bcrypt only reads the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    return value


class UserResponse(BaseSchema):
    """Public view of a user; never carries password material."""

    id: uuid.UUID = Field(..., description="User ID")
    name: str = Field(..., description="User name")
    email: str = Field(..., description="User email address")
    photo: Optional[str] = Field(None, description="Profile photo file name")
    role: str = Field(..., description="User role")
    created_at: datetime = Field(..., description="Account creation time")


class UserData(BaseSchema):
    """Data payload wrapping a single user."""

    user: Optional[UserResponse] = Field(None, description="User information")


class UserListData(BaseSchema):
    """Data payload wrapping a list of users."""

    users: List[UserResponse] = Field(default_factory=list)


class UserEnvelope(BaseSchema):
    """Success response carrying one user."""

    status: Literal["success"] = "success"
    message: Optional[str] = None
    data: UserData


class UserListResponse(BaseSchema):
    """Success response carrying a list of users."""

    status: Literal["success"] = "success"
    results: int = Field(..., description="Number of users returned")
    data: UserListData


class AuthResponse(UserEnvelope):
    """Successful authentication: a fresh session token plus the user."""

    token: str = Field(..., description="JWT session token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration in seconds")


class SignupRequest(BaseSchema):
    """Signup request schema."""

    name: str = Field(..., min_length=1, max_length=40, description="User name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, description="User password")
    password_confirm: str = Field(..., description="Must equal password")

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseSchema):
    """Login request schema; presence is checked by the service."""

    email: Optional[str] = Field(None, description="User email")
    password: Optional[str] = Field(None, description="User password")


class PasswordChangeRequest(BaseSchema):
    """Password change request schema."""

    password_current: str = Field(..., description="Current password")
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, description="New password")
    password_confirm: str = Field(..., description="Must equal password")

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)


class ForgotPasswordRequest(BaseSchema):
    """Forgot password request schema."""

    email: EmailStr = Field(..., description="User email")


class PasswordResetRequest(BaseSchema):
    """Password reset confirmation; the token travels in the URL path."""

    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, description="New password")
    password_confirm: str = Field(..., description="Must equal password")

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)


class ProfileUpdate(BaseSchema):
    """Self-service profile update.

    Password fields are accepted only so the service can reject them with a
    pointer to the change-password route.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=40)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    password_confirm: Optional[str] = None


class AdminUserUpdate(BaseSchema):
    """Admin update of another user; passwords are never set this way."""

    name: Optional[str] = Field(None, min_length=1, max_length=40)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
