"""Invitation endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.api.v1.auth import StaffUser
from happytail.db.session import get_db_session
from happytail.exceptions import ForbiddenError
from happytail.models.invitation import Invitation
from happytail.models.user import UserRole
from happytail.schemas import CamelModel
from happytail.services.invitations import InvitationService
from happytail.services.mailer import send_invitation_email, smtp_configured

router = APIRouter()
logger = structlog.get_logger()


class InvitationCreate(CamelModel):
    email: EmailStr
    # Admins choose the organization; staff always invite into their own
    organization_id: UUID | None = None


class InvitationResponse(CamelModel):
    id: UUID
    token: str
    email: str
    user_id: UUID
    organization_id: UUID
    expires: datetime
    created_at: datetime


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    body: InvitationCreate,
    background_tasks: BackgroundTasks,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db_session),
) -> Invitation:
    """Invite an email address into an organization.

    The link is mailed after the response when SMTP is configured.
    """
    organization_id = current_user.organization_id
    if current_user.role == UserRole.ADMIN.value and body.organization_id is not None:
        organization_id = body.organization_id
    if organization_id is None:
        raise ForbiddenError("User is not a member of any organization")

    invitation = await InvitationService(db).generate(current_user, body.email, organization_id)

    if smtp_configured():
        background_tasks.add_task(send_invitation_email, invitation.email, invitation.token)
    else:
        logger.info("invitation_email_skipped", invitation_id=str(invitation.id))
    return invitation
