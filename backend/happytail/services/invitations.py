"""Invitation tokens for joining an organization."""

import secrets
from datetime import timedelta
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.config import get_settings
from happytail.db.base import utcnow
from happytail.exceptions import (
    ConflictError,
    InvitationExpiredError,
    NotFoundError,
)
from happytail.models.invitation import Invitation
from happytail.models.organization import Organization
from happytail.models.user import User

logger = structlog.get_logger()
settings = get_settings()

TOKEN_BYTES = 60


class InvitationService:
    """Issues and redeems single-use, time-limited invitations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def generate(self, inviter: User, email: str, organization_id: UUID) -> Invitation:
        email = email.strip().lower()

        organization = await self.db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization does not exist")

        existing = await self.db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"User with email {email} already exists")

        # A newer invitation for the same email replaces the old one
        await self.db.execute(delete(Invitation).where(Invitation.email == email))

        invitation = Invitation(
            token=secrets.token_hex(TOKEN_BYTES),
            user_id=inviter.id,
            organization_id=organization.id,
            email=email,
            expires=utcnow() + timedelta(days=settings.invitation_expire_days),
        )
        self.db.add(invitation)
        await self.db.commit()
        await self.db.refresh(invitation)

        logger.info(
            "invitation_created",
            invitation_id=str(invitation.id),
            organization_id=str(organization.id),
            invited_by=str(inviter.id),
        )
        return invitation

    async def redeem(self, token: str, email: str) -> Invitation:
        """Consume an invitation; it is deleted whether or not it has expired."""
        result = await self.db.execute(
            select(Invitation)
            .where(Invitation.token == token, Invitation.email == email.strip().lower())
            .with_for_update()
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("Invitation token does not exist")

        await self.db.delete(invitation)
        await self.db.flush()

        if invitation.is_expired:
            # Keep the deletion even though the caller's transaction fails
            await self.db.commit()
            raise InvitationExpiredError()

        logger.info("invitation_redeemed", invitation_id=str(invitation.id))
        return invitation
