"""Account and user management routes."""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ...schemas.auth import (
    AdminUserUpdate,
    ProfileUpdate,
    UserData,
    UserEnvelope,
    UserListData,
    UserListResponse,
    UserResponse,
)
from ...core.exceptions import BadRequestError, ConflictError, NotFoundError
from ...core.logging import AccountLogger
from ...core.security import admin_required, get_current_user, get_optional_user
from ...models.user import User
from ...services.users import UserStore

router = APIRouter(prefix="/users", tags=["Users"])


def user_envelope(user: Optional[User], message: Optional[str] = None) -> UserEnvelope:
    """Wrap a user (or nobody) in the success envelope."""
    return UserEnvelope(
        message=message,
        data=UserData(user=UserResponse.model_validate(user) if user else None),
    )


async def ensure_email_available(store: UserStore, user: User, email: Optional[str]) -> None:
    """Raise ConflictError if another account already uses `email`."""
    if email is None:
        return
    existing = await store.find_by_email(email)
    if existing is not None and existing.id != user.id:
        raise ConflictError("User with this email already exists")


@router.get("/me", response_model=UserEnvelope)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return user_envelope(current_user)


@router.get("/session", response_model=UserEnvelope)
async def get_session(current_user: Optional[User] = Depends(get_optional_user)):
    """Current user for pages that render for anonymous visitors too."""
    return user_envelope(current_user)


@router.patch("/me", response_model=UserEnvelope)
async def update_me(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update name and email of the current user."""
    if profile_update.password is not None or profile_update.password_confirm is not None:
        raise BadRequestError(
            "This route is not for password updates. Please use /change-password."
        )

    store = UserStore(db)
    changes = profile_update.model_dump(
        include={"name", "email"}, exclude_unset=True, exclude_none=True
    )
    await ensure_email_available(store, current_user, changes.get("email"))

    for field, value in changes.items():
        setattr(current_user, field, value)
    await store.save(current_user)

    AccountLogger.log_profile_updated(str(current_user.id), sorted(changes))
    return user_envelope(current_user, "User details updated successfully.")


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate the current user's account."""
    current_user.active = False
    await UserStore(db).save(current_user, skip_validation=True)

    AccountLogger.log_account_deactivated(str(current_user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=UserListResponse)
async def get_all_users(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Get all active users (admin only)."""
    users = await UserStore(db).list_users()
    return UserListResponse(
        results=len(users),
        data=UserListData(users=[UserResponse.model_validate(user) for user in users]),
    )


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(
    user_id: uuid.UUID,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Get a user by ID (admin only)."""
    user = await UserStore(db).find_by_id(user_id)
    if not user:
        raise NotFoundError("No user found with that ID.")
    return user_envelope(user)


@router.patch("/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: uuid.UUID,
    user_update: AdminUserUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Update name, email or role of a user (admin only)."""
    store = UserStore(db)
    user = await store.find_by_id(user_id)
    if not user:
        raise NotFoundError("No user found with that ID.")

    changes = user_update.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    await ensure_email_available(store, user, changes.get("email"))

    for field, value in changes.items():
        setattr(user, field, value)
    await store.save(user)

    AccountLogger.log_profile_updated(str(user.id), sorted(changes), actor_id=str(current_user.id))
    return user_envelope(user, "User updated successfully.")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Delete a user record (admin only)."""
    store = UserStore(db)
    user = await store.find_by_id(user_id, include_inactive=True)
    if not user:
        raise NotFoundError("No user found with that ID.")

    await store.delete(user)

    AccountLogger.log_account_deleted(str(user_id), actor_id=str(current_user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
