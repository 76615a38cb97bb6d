"""Global configuration properties."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.api.v1.auth import AdminUser
from happytail.db.session import get_db_session
from happytail.models.property import Property
from happytail.schemas import CamelModel
from happytail.services.properties import PropertyStore

router = APIRouter()


class PropertyWrite(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., max_length=10_000)


class PropertyResponse(CamelModel):
    id: UUID
    name: str
    value: str
    created_at: datetime
    updated_at: datetime


def get_property_store(db: AsyncSession = Depends(get_db_session)) -> PropertyStore:
    return PropertyStore(db)


@router.get("", response_model=list[PropertyResponse])
async def list_properties(
    current_user: AdminUser,
    store: PropertyStore = Depends(get_property_store),
) -> list[Property]:
    return await store.list()


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def set_property(
    body: PropertyWrite,
    current_user: AdminUser,
    store: PropertyStore = Depends(get_property_store),
) -> Property:
    """Create or overwrite a property by name."""
    return await store.set(body.name, body.value)
