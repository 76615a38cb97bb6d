"""Authentication endpoints: password, refresh token and OAuth providers."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from pydantic import EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.config import get_settings
from happytail.db.session import get_db_session
from happytail.exceptions import ForbiddenError
from happytail.models.user import User, UserRole
from happytail.schemas import CamelModel
from happytail.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from happytail.services.accounts import AccountService, normalize_email
from happytail.services.oauth_providers import (
    GoogleOAuthService,
    VKOAuthService,
    get_google_service,
    get_vk_service,
)

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


# ============================================================================
# Schemas
# ============================================================================

class UserResponse(CamelModel):
    """User as returned by the API."""

    id: UUID
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    picture: str | None = None
    phone: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    rating: float | None = None
    organization_id: UUID | None = None
    telegram_id: str | None = None
    notifications: dict[str, Any] = Field(default_factory=dict)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    task_stats: dict[str, int]
    created_at: datetime
    updated_at: datetime


class TokenResponse(CamelModel):
    """JWT token pair."""

    token_type: str = "Bearer"
    access_token: str
    refresh_token: str
    expires_in: int


class AuthResponse(CamelModel):
    token: TokenResponse
    user: UserResponse


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=128)
    last_name: str | None = Field(None, max_length=128)
    phone: str | None = None
    invite_token: str | None = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., max_length=128)


class RefreshRequest(CamelModel):
    email: EmailStr
    refresh_token: str


class VKLoginRequest(CamelModel):
    access_token: str
    user_id: str


class GoogleLoginRequest(CamelModel):
    code: str
    redirect_uri: str


# ============================================================================
# Dependencies
# ============================================================================

async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Get the current authenticated user from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = decode_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    """Dependency factory allowing only the given roles through."""
    allowed = {role.value for role in roles}

    async def check_role(current_user: CurrentUser) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("Forbidden")
        return current_user

    return check_role


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
StaffUser = Annotated[User, Depends(require_roles(UserRole.ORGANIZATION, UserRole.ADMIN))]


def issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
        expires_in=settings.jwt_expiration_minutes * 60,
    )


def auth_response(user: User) -> AuthResponse:
    return AuthResponse(token=issue_tokens(user), user=UserResponse.model_validate(user))


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    """Create an account; an invitation token joins its organization."""
    data = body.model_dump(exclude={"invite_token"}, exclude_none=True)
    user = await AccountService(db).register(data, invite_token=body.invite_token)
    return auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    """Exchange email and password for a token pair."""
    user = await AccountService(db).authenticate(body.email, body.password)
    logger.info("user_logged_in", user_id=str(user.id))
    return auth_response(user)


@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """Issue a new token pair from a refresh token."""
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Incorrect email or refreshToken",
    )
    try:
        user_id = decode_token(body.refresh_token, expected_type=REFRESH_TOKEN)
    except JWTError:
        raise invalid

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or user.email != normalize_email(body.email):
        raise invalid

    return issue_tokens(user)


@router.post("/vk", response_model=AuthResponse)
async def vk_login(
    body: VKLoginRequest,
    db: AsyncSession = Depends(get_db_session),
    vk: VKOAuthService = Depends(get_vk_service),
) -> AuthResponse:
    """Log in with a VK access token."""
    try:
        profile = await vk.get_profile(body.access_token, body.user_id)
    except ValueError as e:
        logger.error("VK login failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    user = await AccountService(db).oauth_login(profile)
    return auth_response(user)


@router.post("/google", response_model=AuthResponse)
async def google_login(
    body: GoogleLoginRequest,
    db: AsyncSession = Depends(get_db_session),
    google: GoogleOAuthService = Depends(get_google_service),
) -> AuthResponse:
    """Exchange a Google OAuth authorization code for our tokens."""
    try:
        google_tokens = await google.exchange_code(body.code, body.redirect_uri)
        profile = await google.get_profile(google_tokens["access_token"])
    except ValueError as e:
        logger.error("Google login failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    user = await AccountService(db).oauth_login(profile)
    return auth_response(user)
