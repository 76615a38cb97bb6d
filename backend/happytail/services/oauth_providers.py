"""Third-party identity providers used for OAuth login."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from happytail.config import get_settings

logger = structlog.get_logger()
settings = get_settings()

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
VK_PROFILE_URL = "https://api.vk.com/method/account.getProfileInfo"
VK_API_VERSION = "5.131"


@dataclass
class OAuthProfile:
    """Normalized profile returned by a provider."""

    service: str
    user_id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    picture: str | None = None


class GoogleOAuthService:
    """Service for Google OAuth authentication operations."""

    async def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange authorization code for tokens."""
        if not settings.google_client_id or not settings.google_client_secret.get_secret_value():
            logger.error("Google OAuth credentials not configured")
            raise ValueError("Google OAuth not configured")

        async with httpx.AsyncClient() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.google_client_id,
                    "client_secret": settings.google_client_secret.get_secret_value(),
                    "redirect_uri": redirect_uri,
                    "grant_type": "authorization_code",
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

            if response.status_code != 200:
                error_data = response.json() if response.headers.get("content-type", "").startswith("application/json") else {}
                error_code = error_data.get("error", "unknown")
                error_desc = error_data.get("error_description", response.text)

                logger.error(
                    "Google token exchange failed",
                    status_code=response.status_code,
                    error_code=error_code,
                    error_description=error_desc,
                )

                if error_code == "invalid_grant":
                    raise ValueError("Authorization code expired or already used. Please try signing in again.")
                raise ValueError(f"Token exchange failed: {error_desc}")

            return response.json()

    async def get_profile(self, access_token: str) -> OAuthProfile:
        """Get user information from Google userinfo endpoint."""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code != 200:
            logger.error(
                "Failed to get user info from Google",
                status_code=response.status_code,
                response=response.text,
            )
            raise ValueError("Failed to get user info")

        data = response.json()
        return OAuthProfile(
            service="google",
            user_id=str(data.get("id")),
            email=data.get("email"),
            first_name=data.get("given_name"),
            last_name=data.get("family_name"),
            picture=data.get("picture"),
        )


class VKOAuthService:
    """VK profile lookup for a client-side obtained access token."""

    async def get_profile(self, access_token: str, user_id: str) -> OAuthProfile:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                VK_PROFILE_URL,
                params={"access_token": access_token, "v": VK_API_VERSION},
            )

        data = response.json() if response.status_code == 200 else {}
        if "error" in data or "response" not in data:
            error = data.get("error", {}).get("error_msg", response.text)
            logger.error("Failed to get user info from VK", status_code=response.status_code, error=error)
            raise ValueError("Failed to get user info")

        profile = data["response"]
        return OAuthProfile(
            service="vk",
            user_id=str(user_id),
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            picture=profile.get("photo_200"),
        )


def get_google_service() -> GoogleOAuthService:
    return GoogleOAuthService()


def get_vk_service() -> VKOAuthService:
    return VKOAuthService()
