"""Password reset tokens.

A reset moves a user through ``no reset pending -> pending -> consumed``
(or back to no reset pending when the mail cannot be delivered). Only the
sha256 of the emailed token is stored, together with its expiry; consuming
it clears both, so a token works once.
"""
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..core.auth import (
    PasswordHasher,
    generate_reset_token,
    hash_reset_token,
    password_hasher,
)
from ..core.exceptions import BadRequestError, EmailDeliveryError, InternalServerError, NotFoundError
from ..core.logging import AccountLogger, SecurityLogger
from ..models.base import utcnow
from ..models.user import User
from ..schemas.auth import PasswordResetRequest
from .auth import ensure_passwords_match
from .email import EmailService
from .users import UserStore

RESET_EMAIL_SUBJECT = "Your password reset token (valid for {minutes} minutes)"
RESET_EMAIL_BODY = (
    "Forgot your password? Submit a PATCH request with your new password and "
    "password_confirm to: {url}\n"
    "If you didn't forget your password, please ignore this email."
)


class PasswordResetService:
    """Issues and consumes single-use password reset tokens."""

    def __init__(
        self,
        hasher: PasswordHasher = password_hasher,
        expire_minutes: Optional[int] = None
    ):
        self.hasher = hasher
        self.expire_minutes = expire_minutes or settings.auth.reset_token_expire_minutes

    def issue_token(self, user: User) -> str:
        """Attach a fresh reset token to the user and return the raw value."""
        raw_token = generate_reset_token()
        user.password_reset_token = hash_reset_token(raw_token)
        user.password_reset_expires = utcnow() + timedelta(minutes=self.expire_minutes)
        return raw_token

    async def request_reset(
        self,
        db: AsyncSession,
        email: str,
        notifier: EmailService,
        build_reset_url: Callable[[str], str]
    ) -> None:
        """Issue a reset token for `email` and mail the reset link."""
        store = UserStore(db, self.hasher)
        user = await store.find_by_email(email)
        if user is None:
            raise NotFoundError("There is no user with that email address.")

        # Persist before sending so a delivered link always has a stored token
        raw_token = self.issue_token(user)
        await store.save(user, skip_validation=True)

        try:
            await notifier.send(
                recipient=user.email,
                subject=RESET_EMAIL_SUBJECT.format(minutes=self.expire_minutes),
                body=RESET_EMAIL_BODY.format(url=build_reset_url(raw_token)),
            )
        except EmailDeliveryError as exc:
            user.clear_password_reset()
            await store.save(user, skip_validation=True)
            SecurityLogger.log_password_reset_requested(str(user.id), delivered=False)
            raise InternalServerError(
                "There was an error sending the email. Try again later."
            ) from exc

        SecurityLogger.log_password_reset_requested(str(user.id), delivered=True)

    async def reset_password(
        self,
        db: AsyncSession,
        raw_token: str,
        reset: PasswordResetRequest
    ) -> User:
        """Consume a reset token and set the new password."""
        store = UserStore(db, self.hasher)
        user = await store.find_by_reset_token_hash(hash_reset_token(raw_token))
        if user is None:
            SecurityLogger.log_password_reset_rejected("invalid_or_expired")
            raise BadRequestError("Token is invalid or has expired.")

        ensure_passwords_match(reset.password, reset.password_confirm)

        user.clear_password_reset()
        await store.save(user, password=reset.password)
        AccountLogger.log_password_changed(str(user.id), via="reset_token")
        return user


# Global password reset service instance
password_reset_service = PasswordResetService()
