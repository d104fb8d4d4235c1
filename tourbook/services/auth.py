"""Credential lifecycle: signup, login and password change."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import PasswordHasher, TokenService, password_hasher, token_service
from ..core.exceptions import AuthenticationError, BadRequestError, ConflictError
from ..core.logging import AccountLogger, SecurityLogger
from ..models.user import User
from ..schemas.auth import (
    AuthResponse,
    PasswordChangeRequest,
    SignupRequest,
    UserData,
    UserResponse,
)
from .users import UserStore


def ensure_passwords_match(password: str, password_confirm: str) -> None:
    """Reject a confirmation that differs from the password."""
    if password != password_confirm:
        raise BadRequestError("Passwords do not match.")


class AuthService:
    """Authentication service."""

    def __init__(
        self,
        hasher: PasswordHasher = password_hasher,
        tokens: TokenService = token_service
    ):
        self.hasher = hasher
        self.tokens = tokens

    def store(self, db: AsyncSession) -> UserStore:
        """Credential store bound to a session."""
        return UserStore(db, self.hasher)

    async def signup(self, db: AsyncSession, signup: SignupRequest) -> User:
        """Create a new user with the default role."""
        ensure_passwords_match(signup.password, signup.password_confirm)

        store = self.store(db)
        if await store.find_by_email(signup.email) is not None:
            raise ConflictError("User with this email already exists")

        user = await store.create(
            name=signup.name,
            email=signup.email,
            password=signup.password,
        )
        AccountLogger.log_user_signed_up(str(user.id), user.email)
        return user

    async def authenticate_user(
        self,
        db: AsyncSession,
        email: Optional[str],
        password: Optional[str],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> User:
        """Authenticate user with email and password."""
        if not email or not password:
            raise BadRequestError("Please provide email and password.")

        user = await self.store(db).find_by_email(email, with_password=True)

        # Same cost and same message whether the email or the password is wrong
        if user is None:
            await self.hasher.burn(password)
            matched = False
        else:
            matched = await self.hasher.verify(password, user.password_hash)

        SecurityLogger.log_login_attempt(
            email=email,
            success=matched,
            ip_address=ip_address,
            user_agent=user_agent,
            failure_reason=None if matched else "invalid_credentials"
        )
        if not matched:
            raise AuthenticationError("Incorrect email or password.")

        return user

    async def change_password(
        self,
        db: AsyncSession,
        user: User,
        change: PasswordChangeRequest
    ) -> User:
        """Change the password of an authenticated user."""
        ensure_passwords_match(change.password, change.password_confirm)

        store = self.store(db)
        current = await store.find_by_id(user.id, with_password=True)
        if current is None:
            raise AuthenticationError("The user belonging to this token no longer exists.")

        if not await self.hasher.verify(change.password_current, current.password_hash):
            raise AuthenticationError("Your current password is incorrect.")

        await store.save(current, password=change.password)
        AccountLogger.log_password_changed(str(current.id), via="change_password")
        return current

    def create_auth_response(self, user: User, message: Optional[str] = None) -> AuthResponse:
        """Issue a session token and wrap it with the user."""
        return AuthResponse(
            message=message,
            token=self.tokens.issue(user.id),
            token_type="bearer",
            expires_in=self.tokens.expires_in,
            data=UserData(user=UserResponse.model_validate(user)),
        )


# Global auth service instance
auth_service = AuthService()
