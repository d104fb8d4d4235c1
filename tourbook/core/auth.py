"""Password hashing and session token primitives."""
import asyncio
import hashlib
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from ..config import settings
from .exceptions import ExpiredTokenError, InternalServerError, InvalidTokenError


class PasswordHasher:
    """Salted bcrypt hashing, run off the event loop."""

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds or settings.auth.bcrypt_rounds
        self._dummy_hash: Optional[str] = None

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt."""
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")
        except (ValueError, TypeError) as exc:
            raise InternalServerError("Could not process the password.") from exc

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify password against hash; malformed hashes never match."""
        if not plain_password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(
                plain_password.encode("utf-8"),
                hashed_password.encode("utf-8")
            )
        except ValueError:
            return False

    async def hash(self, password: str) -> str:
        """Hash in the default worker pool."""
        return await asyncio.to_thread(self.hash_password, password)

    async def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify in the default worker pool."""
        return await asyncio.to_thread(
            self.verify_password, plain_password, hashed_password
        )

    async def burn(self, plain_password: str) -> None:
        """Spend one verification's worth of CPU against a throwaway hash.

        Used when there is no stored hash to compare against, so a missing
        account takes as long to reject as a wrong password.
        """
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash(secrets.token_hex(16))
        await self.verify(plain_password or "", self._dummy_hash)


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    user_id: uuid.UUID
    issued_at: float
    expires_at: datetime


class TokenService:
    """Issues and verifies signed session tokens."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_days: Optional[int] = None
    ):
        self.secret_key = secret_key or settings.auth.secret_key
        self.algorithm = algorithm or settings.auth.algorithm
        self.expire_days = expire_days or settings.auth.token_expire_days

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return self.expire_days * 24 * 60 * 60

    def issue(self, user_id: uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT for the user."""
        # Sub-second iat so a password change later in the same second still revokes it
        issued_at = time.time()
        expire = datetime.now(timezone.utc) + (
            expires_delta if expires_delta is not None else timedelta(days=self.expire_days)
        )
        to_encode = {"sub": str(user_id), "iat": issued_at, "exp": expire}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Verify and decode a JWT."""
        try:
            payload = jwt.decode(
                token, self.secret_key, algorithms=[self.algorithm]
            )
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except JWTError as exc:
            raise InvalidTokenError() from exc

        try:
            user_id = uuid.UUID(payload["sub"])
            issued_at = float(payload["iat"])
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError() from exc

        return TokenClaims(user_id=user_id, issued_at=issued_at, expires_at=expires_at)


def generate_reset_token() -> str:
    """Random single-use reset token (32 bytes, hex)."""
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    """One-way digest under which a reset token is stored and looked up."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# Global instances
password_hasher = PasswordHasher()
token_service = TokenService()
