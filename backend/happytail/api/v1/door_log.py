"""Door sensor log endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.api.v1.properties import get_property_store
from happytail.db.session import get_db_session
from happytail.models.door_log import DoorLog, DoorState
from happytail.schemas import CamelModel
from happytail.services.alarm import AlarmNotifier
from happytail.services.properties import PropertyStore
from happytail.services.telegram import TelegramClient, get_telegram_client

router = APIRouter()
logger = structlog.get_logger()


class DoorLogCreate(CamelModel):
    state: DoorState

    @field_validator("state", mode="before")
    @classmethod
    def upper_case_state(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class DoorLogResponse(CamelModel):
    id: UUID
    state: str
    created_at: datetime
    updated_at: datetime


def get_alarm_notifier(
    store: PropertyStore = Depends(get_property_store),
    bot: TelegramClient = Depends(get_telegram_client),
) -> AlarmNotifier:
    return AlarmNotifier(store, bot)


@router.post("", response_model=DoorLogResponse, status_code=status.HTTP_201_CREATED)
async def create_door_log(
    body: DoorLogCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
    notifier: AlarmNotifier = Depends(get_alarm_notifier),
) -> DoorLog:
    """Record a door state change and alert subscribers if the alarm is armed."""
    door_log = DoorLog(state=body.state)
    db.add(door_log)
    await db.commit()
    await db.refresh(door_log)
    logger.info("door_log_created", door_log_id=str(door_log.id), state=door_log.state)

    chat_ids = await notifier.recipients()
    if chat_ids:
        background_tasks.add_task(notifier.broadcast, chat_ids, notifier.message(door_log))
    return door_log


@router.get("", response_model=list[DoorLogResponse])
async def list_door_logs(
    db: AsyncSession = Depends(get_db_session),
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100, alias="perPage"),
    state: DoorState | None = None,
) -> list[DoorLog]:
    """Door history, newest first."""
    query = select(DoorLog)
    if state is not None:
        query = query.where(DoorLog.state == state.value)
    result = await db.execute(
        query.order_by(DoorLog.created_at.desc(), DoorLog.id)
        .offset(per_page * (page - 1))
        .limit(per_page)
    )
    return list(result.scalars().all())
