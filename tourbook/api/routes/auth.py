"""Authentication routes."""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...database import get_db
from ...schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    PasswordChangeRequest,
    PasswordResetRequest,
    SignupRequest,
)
from ...schemas.common import StatusResponse
from ...core.security import get_current_user
from ...models.user import User
from ...services.auth import auth_service
from ...services.email import EmailService, get_email_service
from ...services.password_reset import password_reset_service

router = APIRouter(prefix="/users", tags=["Authentication"])


def set_session_cookie(response: Response, token: str) -> None:
    """Mirror the issued token into the http-only session cookie."""
    response.set_cookie(
        key=settings.auth.cookie_name,
        value=token,
        max_age=settings.auth.cookie_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def send_auth_response(response: Response, auth: AuthResponse) -> AuthResponse:
    """Set the cookie for an issued token and return the body."""
    set_session_cookie(response, auth.token)
    return auth


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    signup_request: SignupRequest,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Register a new user and log them in."""
    user = await auth_service.signup(db, signup_request)
    return send_auth_response(
        response,
        auth_service.create_auth_response(user, "User signed up successfully.")
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    login_request: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Login user and return a session token."""
    user = await auth_service.authenticate_user(
        db,
        login_request.email,
        login_request.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return send_auth_response(
        response,
        auth_service.create_auth_response(user, "User logged in successfully.")
    )


@router.get("/logout", response_model=StatusResponse)
async def logout(response: Response):
    """Logout user by overwriting the session cookie."""
    # Tokens are stateless; clients holding a bearer token simply drop it
    response.set_cookie(
        key=settings.auth.cookie_name,
        value="loggedout",
        max_age=10,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return StatusResponse(message="Logged out successfully.")


@router.post("/forgot-password", response_model=StatusResponse)
async def forgot_password(
    forgot_request: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifier: EmailService = Depends(get_email_service)
):
    """Email a single-use password reset link."""
    await password_reset_service.request_reset(
        db,
        forgot_request.email,
        notifier,
        build_reset_url=lambda token: str(request.url_for("reset_password", token=token)),
    )
    return StatusResponse(message="Token sent to email.")


@router.patch("/reset-password/{token}", response_model=AuthResponse)
async def reset_password(
    token: str,
    reset_request: PasswordResetRequest,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Set a new password with a reset token and log the user in."""
    user = await password_reset_service.reset_password(db, token, reset_request)
    return send_auth_response(
        response,
        auth_service.create_auth_response(user, "User logged in with new password.")
    )


@router.patch("/change-password", response_model=AuthResponse)
async def change_password(
    password_change: PasswordChangeRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change user password; earlier sessions are revoked, this one is renewed."""
    user = await auth_service.change_password(db, current_user, password_change)
    return send_auth_response(
        response,
        auth_service.create_auth_response(user, "User logged in with updated password.")
    )
