"""Tasks API endpoints."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.api.v1.auth import CurrentUser, StaffUser
from happytail.db.session import get_db_session
from happytail.exceptions import NotFoundError
from happytail.models.task import Task, TaskPriority, TaskStatus, TaskType
from happytail.schemas import CamelModel, point
from happytail.services.task_lifecycle import TaskLifecycleService

router = APIRouter()
logger = structlog.get_logger()

# Statuses an owner may set directly; the rest are reached through take/release/finish
EditableStatus = Literal["available", "in_progress", "hidden"]


class TaskResponse(CamelModel):
    """Task response."""

    id: UUID
    title: str
    description: str
    location: dict[str, Any] | None = None
    status: str
    priority: str
    type: str
    owner_id: UUID
    organization_id: UUID | None = None
    organization: dict[str, Any] | None = None
    date: datetime | None = None
    duration: int | None = None
    has_many_assignee: bool
    created_at: datetime
    updated_at: datetime


class TaskCreate(CamelModel):
    """Task create/replace request."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    priority: TaskPriority = TaskPriority.MEDIUM
    type: TaskType = TaskType.OTHER
    date: datetime | None = None
    duration: int | None = Field(None, ge=0)
    has_many_assignee: bool = False


class TaskReplace(TaskCreate):
    status: EditableStatus = "available"


class TaskUpdate(CamelModel):
    """Task partial update request."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, min_length=1)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    status: EditableStatus | None = None
    priority: TaskPriority | None = None
    type: TaskType | None = None
    date: datetime | None = None
    duration: int | None = Field(None, ge=0)
    has_many_assignee: bool | None = None


def task_fields(body: CamelModel, exclude_unset: bool = False) -> dict[str, Any]:
    """Map a request body onto Task columns, folding coordinates into ``location``."""
    data = body.model_dump(exclude_unset=exclude_unset)
    latitude = data.pop("latitude", None)
    longitude = data.pop("longitude", None)
    if not exclude_unset or (latitude is not None and longitude is not None):
        data["location"] = point(latitude, longitude)
    if exclude_unset:
        # Columns that cannot be cleared
        for field in ("title", "description", "status", "priority", "type", "has_many_assignee"):
            if field in data and data[field] is None:
                del data[field]
    return data


async def load_task(
    task_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    task = await TaskLifecycleService(db).get_task(task_id)
    if task.status == TaskStatus.DELETED.value:
        raise NotFoundError("Task does not exist")
    return task


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    db: AsyncSession = Depends(get_db_session),
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100, alias="perPage"),
    title: str | None = Query(None, max_length=200),
    priority: list[TaskPriority] | None = Query(None),
) -> list[Task]:
    """List visible tasks.

    ``priority`` may be repeated to match any of several priorities.
    """
    return await TaskLifecycleService(db).list_tasks(
        page=page,
        per_page=per_page,
        title=title,
        priorities=[p.value for p in priority] if priority else None,
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    current_user: StaffUser,
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Create a task for the caller's organization."""
    return await TaskLifecycleService(db).create(task_fields(body), current_user)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task: Task = Depends(load_task)) -> Task:
    return task


@router.put("/{task_id}", response_model=TaskResponse)
async def replace_task(
    body: TaskReplace,
    current_user: StaffUser,
    task: Task = Depends(load_task),
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Replace a task (owner only)."""
    return await TaskLifecycleService(db).replace(task, task_fields(body), current_user)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    body: TaskUpdate,
    current_user: CurrentUser,
    task: Task = Depends(load_task),
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Update some task fields (owner only)."""
    data = task_fields(body, exclude_unset=True)
    return await TaskLifecycleService(db).update(task, data, current_user)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    current_user: StaffUser,
    task: Task = Depends(load_task),
    db: AsyncSession = Depends(get_db_session),
) -> None:
    await TaskLifecycleService(db).remove(task, current_user)


@router.post("/{task_id}/take", response_model=TaskResponse)
async def take_task(
    current_user: CurrentUser,
    task: Task = Depends(load_task),
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Take an available task."""
    return await TaskLifecycleService(db).take(task, current_user)


@router.post("/{task_id}/release", response_model=TaskResponse)
async def release_task(
    current_user: CurrentUser,
    task: Task = Depends(load_task),
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Give a taken task back."""
    return await TaskLifecycleService(db).release(task, current_user)


@router.post("/{task_id}/finish", response_model=TaskResponse)
async def finish_task(
    current_user: CurrentUser,
    task: Task = Depends(load_task),
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Mark a taken task as done."""
    return await TaskLifecycleService(db).finish(task, current_user)
