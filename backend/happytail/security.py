"""Password hashing and JWT helpers."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from happytail.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unknown or malformed hash, e.g. the placeholder of an OAuth-only account
        return False


def unusable_password() -> str:
    """Random secret for accounts created through an OAuth provider."""
    return hash_password(secrets.token_urlsafe(32))


def _create_token(user_id: UUID, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "type": token_type,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expiration_minutes)
    return _create_token(user_id, ACCESS_TOKEN, expires_delta)


def create_refresh_token(user_id: UUID) -> str:
    """Create a JWT refresh token."""
    return _create_token(
        user_id, REFRESH_TOKEN, timedelta(days=settings.jwt_refresh_token_expire_days)
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> UUID:
    """Verify signature, expiry and type; return the subject user id.

    Raises ``JWTError`` on any failure.
    """
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
    )
    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != expected_type:
        raise JWTError("Invalid token")
    try:
        return UUID(user_id)
    except ValueError as e:
        raise JWTError("Invalid token subject") from e
