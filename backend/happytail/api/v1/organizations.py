"""Organization management endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.api.v1.auth import AdminUser, CurrentUser, UserResponse
from happytail.db.session import get_db_session
from happytail.exceptions import NotFoundError
from happytail.models.organization import Organization, OrganizationType
from happytail.models.user import User
from happytail.schemas import CamelModel

router = APIRouter()
logger = structlog.get_logger()


class OrganizationResponse(CamelModel):
    """Organization response."""

    id: UUID
    title: str
    type: str
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location: dict[str, Any] | None = None
    phone: str | None = None
    task_stats: dict[str, int]
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class OrganizationCreate(CamelModel):
    """Organization create/replace request."""

    title: str = Field(..., min_length=1, max_length=255)
    type: OrganizationType = OrganizationType.SHELTER
    description: str | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    phone: str | None = Field(None, max_length=50)


class OrganizationUpdate(CamelModel):
    """Organization partial update request."""

    title: str | None = Field(None, min_length=1, max_length=255)
    type: OrganizationType | None = None
    description: str | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    phone: str | None = Field(None, max_length=50)


async def load_organization(
    organization_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> Organization:
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    organization = result.scalar_one_or_none()
    if organization is None:
        raise NotFoundError("Organization does not exist")
    return organization


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    db: AsyncSession = Depends(get_db_session),
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100, alias="perPage"),
) -> list[Organization]:
    """List organizations, newest first."""
    result = await db.execute(
        select(Organization)
        .order_by(Organization.created_at.desc(), Organization.id)
        .offset(per_page * (page - 1))
        .limit(per_page)
    )
    return list(result.scalars().all())


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrganizationCreate,
    current_user: AdminUser,
    db: AsyncSession = Depends(get_db_session),
) -> Organization:
    """Create an organization (admin only)."""
    organization = Organization(**body.model_dump())
    db.add(organization)
    await db.commit()
    await db.refresh(organization)

    logger.info(
        "organization_created",
        organization_id=str(organization.id),
        created_by=str(current_user.id),
    )
    return organization


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization: Organization = Depends(load_organization),
) -> Organization:
    return organization


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def replace_organization(
    body: OrganizationCreate,
    current_user: AdminUser,
    organization: Organization = Depends(load_organization),
    db: AsyncSession = Depends(get_db_session),
) -> Organization:
    """Replace organization profile fields. Counters and task references are kept."""
    for field, value in body.model_dump().items():
        setattr(organization, field, value)
    await db.commit()
    await db.refresh(organization)
    logger.info("organization_replaced", organization_id=str(organization.id))
    return organization


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    body: OrganizationUpdate,
    current_user: AdminUser,
    organization: Organization = Depends(load_organization),
    db: AsyncSession = Depends(get_db_session),
) -> Organization:
    data = body.model_dump(exclude_unset=True)
    for field in ("title", "type"):
        if field in data and data[field] is None:
            del data[field]
    for field, value in data.items():
        setattr(organization, field, value)
    await db.commit()
    await db.refresh(organization)
    logger.info("organization_updated", organization_id=str(organization.id), fields=sorted(data))
    return organization


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    current_user: AdminUser,
    organization: Organization = Depends(load_organization),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await db.delete(organization)
    await db.commit()
    logger.info("organization_deleted", organization_id=str(organization.id))


@router.get("/{organization_id}/members", response_model=list[UserResponse])
async def list_members(
    current_user: CurrentUser,
    organization: Organization = Depends(load_organization),
    db: AsyncSession = Depends(get_db_session),
) -> list[User]:
    """Users that belong to the organization."""
    result = await db.execute(
        select(User)
        .where(User.organization_id == organization.id)
        .order_by(User.created_at, User.id)
    )
    return list(result.scalars().all())
