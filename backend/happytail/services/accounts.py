"""User accounts: registration, credentials and OAuth linking."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.exceptions import AuthenticationError, NotFoundError, duplicate_email_error
from happytail.models.organization import Organization
from happytail.models.user import User, UserRole
from happytail.security import hash_password, unusable_password, verify_password
from happytail.services.invitations import InvitationService
from happytail.services.oauth_providers import OAuthProfile

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    """Service for creating and authenticating users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    async def find_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def list_users(
        self,
        page: int = 1,
        per_page: int = 30,
        first_name: str | None = None,
        email: str | None = None,
        role: str | None = None,
        organization_id: UUID | None = None,
    ) -> list[User]:
        query = select(User)
        if first_name:
            query = query.where(User.first_name == first_name)
        if email:
            query = query.where(User.email == normalize_email(email))
        if role:
            query = query.where(User.role == role)
        if organization_id:
            query = query.where(User.organization_id == organization_id)

        query = (
            query.order_by(User.created_at.desc(), User.id)
            .offset(per_page * (page - 1))
            .limit(per_page)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_user(self, data: dict[str, Any]) -> User:
        """Create a user from validated fields; ``password`` is plain text."""
        data = dict(data)
        data["email"] = normalize_email(data["email"])
        if await self.find_by_email(data["email"]) is not None:
            raise duplicate_email_error()
        await self._check_organization(data.get("organization_id"))

        user = User(**{**data, "password": hash_password(data["password"])})
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise duplicate_email_error() from e

        await self.db.commit()
        await self.db.refresh(user)
        logger.info("user_created", user_id=str(user.id), role=user.role)
        return user

    async def register(self, data: dict[str, Any], invite_token: str | None = None) -> User:
        """Public sign-up, optionally redeeming an invitation.

        The invitation is consumed and the new user joins its organization
        with the ``organization`` role.
        """
        data = {k: v for k, v in data.items() if k not in ("role", "organization_id")}
        if invite_token:
            invitation = await InvitationService(self.db).redeem(invite_token, data["email"])
            data["organization_id"] = invitation.organization_id
            data["role"] = UserRole.ORGANIZATION.value
        return await self.create_user(data)

    async def update_user(self, user: User, data: dict[str, Any]) -> User:
        data = dict(data)
        if "email" in data and data["email"] is not None:
            data["email"] = normalize_email(data["email"])
            if data["email"] != user.email and await self.find_by_email(data["email"]) is not None:
                raise duplicate_email_error()
        await self._check_organization(data.get("organization_id"))
        if data.get("password"):
            data["password"] = hash_password(data["password"])
        else:
            data.pop("password", None)

        for field, value in data.items():
            setattr(user, field, value)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("user_updated", user_id=str(user.id), fields=sorted(data))
        return user

    async def _check_organization(self, organization_id: UUID | None) -> None:
        if organization_id is not None and await self.db.get(Organization, organization_id) is None:
            raise NotFoundError("Organization does not exist")

    async def delete_user(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.commit()
        logger.info("user_deleted", user_id=str(user.id))

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.find_by_email(email)
        if user is None or not verify_password(password, user.password):
            raise AuthenticationError("Incorrect email or password")
        return user

    async def oauth_login(self, profile: OAuthProfile) -> User:
        """Attach a provider id to the matching account or create a new one."""
        conditions = [User.services[profile.service].as_string() == profile.user_id]
        if profile.email:
            conditions.append(User.email == normalize_email(profile.email))
        result = await self.db.execute(select(User).where(or_(*conditions)))
        user = result.scalars().first()

        if user is not None:
            user.services = {**(user.services or {}), profile.service: profile.user_id}
            if not user.first_name:
                user.first_name = profile.first_name
            if not user.last_name:
                user.last_name = profile.last_name
            if not user.picture:
                user.picture = profile.picture
            await self.db.commit()
            await self.db.refresh(user)
            logger.info("oauth_account_linked", user_id=str(user.id), service=profile.service)
            return user

        email = profile.email or f"{profile.service}-{profile.user_id}@oauth.invalid"
        user = User(
            email=normalize_email(email),
            password=unusable_password(),
            first_name=profile.first_name,
            last_name=profile.last_name,
            picture=profile.picture,
            services={profile.service: profile.user_id},
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("oauth_account_created", user_id=str(user.id), service=profile.service)
        return user
