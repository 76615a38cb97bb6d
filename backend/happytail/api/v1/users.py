"""User management endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.api.v1.auth import AdminUser, CurrentUser, UserResponse
from happytail.db.session import get_db_session
from happytail.exceptions import ForbiddenError
from happytail.models.user import User, UserRole
from happytail.schemas import CamelModel
from happytail.services.accounts import AccountService

router = APIRouter()
logger = structlog.get_logger()


class Notifications(CamelModel):
    telegram: bool = False


class UserCreate(CamelModel):
    """Admin-side user creation."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    phone: str | None = None
    role: UserRole = UserRole.USER
    organization_id: UUID | None = None


class UserReplace(UserCreate):
    """Full profile replacement."""

    picture: str | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    telegram_id: str | None = None
    notifications: Notifications = Field(default_factory=Notifications)


class UserUpdate(CamelModel):
    """Partial profile update."""

    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    phone: str | None = None
    picture: str | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    telegram_id: str | None = None
    notifications: Notifications | None = None
    role: UserRole | None = None
    organization_id: UUID | None = None


# Fields only an admin may change
ADMIN_FIELDS = {"role", "organization_id"}


async def load_user(
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Load a user that the caller is allowed to manage (self or admin)."""
    if current_user.role != UserRole.ADMIN.value and current_user.id != user_id:
        raise ForbiddenError("Only user with same id or admins can access the data")
    if current_user.id == user_id:
        return current_user
    return await AccountService(db).get_user(user_id)


def _changes(body: UserUpdate | UserReplace, current_user: User, exclude_unset: bool) -> dict:
    data = body.model_dump(exclude_unset=exclude_unset)
    # Required columns cannot be cleared
    for field in ("email", "password", "notifications", "role"):
        if field in data and data[field] is None:
            del data[field]
    if current_user.role != UserRole.ADMIN.value:
        for field in ADMIN_FIELDS:
            data.pop(field, None)
    return data


@router.get("", response_model=list[UserResponse])
async def list_users(
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db_session),
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100, alias="perPage"),
    first_name: str | None = Query(None, alias="firstName"),
    email: str | None = None,
    role: UserRole | None = None,
    organization_id: UUID | None = Query(None, alias="organizationId"),
) -> list[User]:
    """List users (admin only)."""
    return await AccountService(db).list_users(
        page=page,
        per_page=per_page,
        first_name=first_name,
        email=email,
        role=role.value if role else None,
        organization_id=organization_id,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Create a user (admin only)."""
    return await AccountService(db).create_user(body.model_dump())


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: CurrentUser) -> User:
    """Get the logged in user."""
    return current_user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user: User = Depends(load_user)) -> User:
    return user


@router.put("/{user_id}", response_model=UserResponse)
async def replace_user(
    body: UserReplace,
    current_user: CurrentUser,
    user: User = Depends(load_user),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Replace the whole profile."""
    data = _changes(body, current_user, exclude_unset=False)
    return await AccountService(db).update_user(user, data)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    body: UserUpdate,
    current_user: CurrentUser,
    user: User = Depends(load_user),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Update some profile fields."""
    data = _changes(body, current_user, exclude_unset=True)
    return await AccountService(db).update_user(user, data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user: User = Depends(load_user),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await AccountService(db).delete_user(user)
