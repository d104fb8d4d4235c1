"""User credential store.

Thin wrapper over the async SQLAlchemy session that owns the lifecycle
callbacks of the ``User`` entity:

* before persist: validate the record (unless ``skip_validation``), hash a
  new plaintext password and, for existing records, stamp
  ``password_changed_at``;
* after load: drop soft-deleted (inactive) records so authentication never
  sees them.

The password hash is a deferred column; callers that need it must ask for it
with ``with_password=True``.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from ..core.auth import PasswordHasher, password_hasher
from ..core.exceptions import BadRequestError, ConflictError
from ..models.base import utcnow
from ..models.user import Role, User

NAME_MAX_LENGTH = 40
ROLES = frozenset(role.value for role in Role)


def normalize_email(email: str) -> str:
    """Strip and lower-case an email address."""
    return email.strip().lower()


class UserStore:
    """Credential store over a single database session."""

    def __init__(self, db: AsyncSession, hasher: PasswordHasher = password_hasher):
        self.db = db
        self.hasher = hasher

    # Lifecycle callbacks

    def _after_load(self, user: Optional[User], include_inactive: bool = False) -> Optional[User]:
        if user is None:
            return None
        if not user.active and not include_inactive:
            return None
        return user

    def _validate(self, user: User) -> None:
        name = (user.name or "").strip()
        if not name:
            raise BadRequestError("Please enter your name.")
        if len(name) > NAME_MAX_LENGTH:
            raise BadRequestError(
                f"A user name must have less or equal than {NAME_MAX_LENGTH} characters."
            )
        user.name = name

        try:
            validate_email(user.email or "", check_deliverability=False)
        except EmailNotValidError as exc:
            raise BadRequestError("Please provide a valid email.") from exc

        if user.role not in ROLES:
            raise BadRequestError(
                f"Role must be one of: {', '.join(sorted(ROLES))}."
            )

    async def _before_persist(
        self,
        user: User,
        password: Optional[str],
        is_new: bool,
        skip_validation: bool
    ) -> None:
        if user.email:
            user.email = normalize_email(user.email)
        if not skip_validation:
            self._validate(user)
        if password is not None:
            user.password_hash = await self.hasher.hash(password)
            if not is_new:
                user.password_changed_at = utcnow()

    # Reads

    async def find_by_id(
        self,
        user_id: uuid.UUID,
        *,
        with_password: bool = False,
        include_inactive: bool = False
    ) -> Optional[User]:
        """Get user by ID."""
        stmt = select(User).where(User.id == user_id)
        if with_password:
            stmt = stmt.options(undefer(User.password_hash)).execution_options(
                populate_existing=True
            )
        result = await self.db.execute(stmt)
        return self._after_load(result.scalar_one_or_none(), include_inactive)

    async def find_by_email(self, email: str, *, with_password: bool = False) -> Optional[User]:
        """Get user by email."""
        stmt = select(User).where(User.email == normalize_email(email))
        if with_password:
            stmt = stmt.options(undefer(User.password_hash)).execution_options(
                populate_existing=True
            )
        result = await self.db.execute(stmt)
        return self._after_load(result.scalar_one_or_none())

    async def find_by_reset_token_hash(
        self,
        token_hash: str,
        *,
        now: Optional[datetime] = None
    ) -> Optional[User]:
        """Get the user with a matching, unexpired reset token, row-locked."""
        stmt = (
            select(User)
            .where(
                User.password_reset_token == token_hash,
                User.password_reset_expires > (now or utcnow()),
            )
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        return self._after_load(result.scalar_one_or_none())

    async def list_users(self, limit: int = 100) -> List[User]:
        """Active users, newest first."""
        stmt = select(User).order_by(User.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return [user for user in result.scalars().all() if self._after_load(user)]

    # Writes

    async def create(self, name: str, email: str, password: str, role: str = Role.USER.value) -> User:
        """Create and commit a new user."""
        user = User(name=name, email=email, role=role, active=True)
        await self._before_persist(user, password, is_new=True, skip_validation=False)
        self.db.add(user)
        await self._commit()
        return user

    async def save(
        self,
        user: User,
        *,
        password: Optional[str] = None,
        skip_validation: bool = False
    ) -> User:
        """Persist changes to an existing user and commit."""
        await self._before_persist(user, password, is_new=False, skip_validation=skip_validation)
        self.db.add(user)
        await self._commit()
        return user

    async def delete(self, user: User) -> None:
        """Remove a user record."""
        await self.db.delete(user)
        await self._commit()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("User with this email already exists") from exc
