"""Route guards: session resolution and role-based authorization."""
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models.user import Role, User
from ..services.users import UserStore
from .auth import TokenService, token_service
from .exceptions import AuthenticationError, AuthorizationError
from .logging import SecurityLogger

# Security scheme; the cookie is the fallback so a missing header is not an error here
security = HTTPBearer(auto_error=False)


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None
) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth.cookie_name) or None


async def resolve_session(
    db: AsyncSession,
    token: Optional[str],
    tokens: TokenService = token_service
) -> User:
    """Resolve a session token to a live user or raise AuthenticationError."""
    if not token:
        raise AuthenticationError("You are not logged in. Please log in to get access.")

    # Signature and expiry
    claims = tokens.verify(token)

    # User must still exist and be active
    user = await UserStore(db).find_by_id(claims.user_id)
    if user is None:
        raise AuthenticationError("The user belonging to this token no longer exists.")

    # Tokens issued before the last password change are revoked
    if user.changed_password_after(claims.issued_at):
        raise AuthenticationError("User recently changed password. Please log in again.")

    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user."""
    try:
        user = await resolve_session(db, extract_token(request, credentials))
    except AuthenticationError as exc:
        SecurityLogger.log_unauthorized_access(
            path=str(request.url.path),
            method=request.method,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            reason=exc.error_code
        )
        raise

    request.state.user = user
    request.state.user_id = str(user.id)
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Get current user if authenticated, otherwise None."""
    try:
        user = await resolve_session(db, extract_token(request, credentials))
    except AuthenticationError:
        return None

    request.state.user = user
    request.state.user_id = str(user.id)
    return user


def authorize(user: User, allowed_roles: Iterable[str]) -> None:
    """Raise AuthorizationError unless the user's role is in the allow-list."""
    if user.role not in allowed_roles:
        raise AuthorizationError()


class RoleChecker:
    """Per-route allow-list of roles, fixed when the route is declared."""

    def __init__(self, allowed_roles: Iterable[str]):
        self.allowed_roles = frozenset(
            role.value if isinstance(role, Role) else role for role in allowed_roles
        )

    def __call__(self, request: Request, current_user: User = Depends(get_current_user)) -> User:
        try:
            authorize(current_user, self.allowed_roles)
        except AuthorizationError:
            SecurityLogger.log_forbidden_access(
                user_id=str(current_user.id),
                role=current_user.role,
                allowed_roles=sorted(self.allowed_roles),
                path=str(request.url.path)
            )
            raise
        return current_user


# Common role checkers
admin_required = RoleChecker([Role.ADMIN])
