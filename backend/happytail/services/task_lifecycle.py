"""Task lifecycle: creation, take/release/finish and the counters they drive.

Single-assignee tasks carry their own authoritative ``status``
(``available -> assigned -> done``, with release going back to
``available``). Many-assignee tasks stay ``available`` and completion is
tracked on each user's embedded copy; the organization counts such a task
as done on its first finish.

Owners cannot change the status of a task somebody holds or has finished,
which keeps the task row, its holders' copies and the counters in step.

Every operation runs in one transaction: the task row is moved with a
conditional UPDATE so two concurrent takes cannot both win, and the user and
organization rows are locked while their embedded lists are rewritten.
"""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import String, cast, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from happytail.db.base import utcnow
from happytail.exceptions import (
    ForbiddenError,
    NotFoundError,
    PreconditionError,
    TaskNotAssignedError,
    TaskNotAvailableError,
)
from happytail.models.organization import Organization
from happytail.models.task import HIDDEN_STATUSES, Task, TaskPriority, TaskStatus, TaskType
from happytail.models.user import User

logger = structlog.get_logger()

AVAILABLE = TaskStatus.AVAILABLE.value
ASSIGNED = TaskStatus.ASSIGNED.value
DONE = TaskStatus.DONE.value

# Fields a replace (PUT) resets when they are omitted
REPLACE_DEFAULTS: dict[str, Any] = {
    "location": None,
    "status": AVAILABLE,
    "priority": TaskPriority.MEDIUM.value,
    "type": TaskType.OTHER.value,
    "date": None,
    "duration": None,
    "has_many_assignee": False,
}


class TaskLifecycleService:
    """Service implementing the task state machine."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_task(self, task_id: UUID) -> Task:
        result = await self.db.execute(select(Task).where(Task.id == task_id))
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task does not exist")
        return task

    async def list_tasks(
        self,
        page: int = 1,
        per_page: int = 30,
        title: str | None = None,
        priorities: Sequence[str] | None = None,
    ) -> list[Task]:
        """List visible tasks, newest first.

        Hidden and deleted tasks are never returned.
        """
        query = select(Task).where(Task.status.not_in(HIDDEN_STATUSES))
        if title:
            query = query.where(Task.title.ilike(f"%{title}%"))
        if priorities:
            query = query.where(Task.priority.in_(list(priorities)))

        query = (
            query.order_by(Task.created_at.desc(), Task.id)
            .offset(per_page * (page - 1))
            .limit(per_page)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # =========================================================================
    # Owner operations
    # =========================================================================

    async def create(self, data: dict[str, Any], owner: User) -> Task:
        """Create a task on behalf of ``owner`` and count it for their organization."""
        task = Task(**data)
        task.owner_id = owner.id

        organization = None
        if owner.organization_id is not None:
            organization = await self._lock_organization(owner.organization_id)
            if organization is None:
                raise NotFoundError("Organization does not exist")
            task.organization_id = organization.id
            task.organization = organization.snapshot()

        self.db.add(task)
        await self.db.flush()

        if organization is not None:
            organization.task_stats_all += 1
            organization.task_stats_active += 1
            organization.tasks = [*(organization.tasks or []), _org_reference(task)]

        await self.db.commit()
        await self.db.refresh(task)

        logger.info(
            "task_created",
            task_id=str(task.id),
            owner_id=str(owner.id),
            organization_id=str(task.organization_id) if task.organization_id else None,
        )
        return task

    @staticmethod
    def ensure_owner(task: Task, user: User) -> None:
        """Only the creator of a task may replace, update or remove it."""
        if task.owner_id != user.id:
            raise ForbiddenError("Only the task owner can modify this task")

    async def replace(self, task: Task, data: dict[str, Any], user: User) -> Task:
        self.ensure_owner(task, user)
        values = {field: data.get(field, default) for field, default in REPLACE_DEFAULTS.items()}
        await self._check_lifecycle_fields(task, values)
        for field, value in values.items():
            setattr(task, field, value)
        task.title = data["title"]
        task.description = data["description"]
        await self.db.commit()
        await self.db.refresh(task)
        logger.info("task_replaced", task_id=str(task.id))
        return task

    async def update(self, task: Task, data: dict[str, Any], user: User) -> Task:
        self.ensure_owner(task, user)
        await self._check_lifecycle_fields(task, data)
        for field, value in data.items():
            setattr(task, field, value)
        await self.db.commit()
        await self.db.refresh(task)
        logger.info("task_updated", task_id=str(task.id), fields=sorted(data))
        return task

    async def remove(self, task: Task, user: User) -> None:
        """Soft delete: the task disappears from listings but stays referenced.

        A task somebody still holds cannot be deleted.
        """
        self.ensure_owner(task, user)
        if task.status == ASSIGNED or await self.holders(task):
            raise PreconditionError("Task is taken and cannot be deleted")
        task.status = TaskStatus.DELETED.value
        await self.db.commit()
        logger.info("task_deleted", task_id=str(task.id))

    async def holders(self, task: Task) -> list[User]:
        """Users with an assigned entry for ``task``."""
        key = str(task.id)
        # Text match narrows the scan; the entry itself is checked below
        result = await self.db.execute(
            select(User).where(cast(User.tasks, String).contains(key))
        )
        return [
            holder
            for holder in result.scalars().all()
            if (holder.find_task(task.id) or {}).get("status") == ASSIGNED
        ]

    # =========================================================================
    # Volunteer operations
    # =========================================================================

    async def take(self, task: Task, user: User) -> Task:
        if task.status != AVAILABLE:
            raise TaskNotAvailableError()

        await self.db.refresh(user, with_for_update=True)
        existing = user.find_task(task.id)

        if task.has_many_assignee:
            if existing is not None and existing.get("status") == ASSIGNED:
                raise TaskNotAvailableError("Operation not allowed: task is already taken")
        else:
            await self._move(task, AVAILABLE, ASSIGNED, TaskNotAvailableError)

        entry = {**task.reference(status=ASSIGNED), "takenAt": utcnow().isoformat()}
        entries = [e for e in user.tasks or [] if e.get("id") != str(task.id)]
        user.replace_tasks([*entries, entry])

        await self.db.commit()
        logger.info(
            "task_taken",
            task_id=str(task.id),
            user_id=str(user.id),
            has_many_assignee=task.has_many_assignee,
        )
        return task

    async def release(self, task: Task, user: User) -> Task:
        self._check_releasable(task)

        await self.db.refresh(user, with_for_update=True)
        self._held_entry(task, user)

        if task.has_many_assignee:
            task.status = AVAILABLE
        else:
            await self._move(task, ASSIGNED, AVAILABLE, TaskNotAssignedError)

        user.replace_tasks([e for e in user.tasks if e.get("id") != str(task.id)])

        await self.db.commit()
        logger.info("task_released", task_id=str(task.id), user_id=str(user.id))
        return task

    async def finish(self, task: Task, user: User) -> Task:
        self._check_releasable(task)

        await self.db.refresh(user, with_for_update=True)
        entry = self._held_entry(task, user)

        if not task.has_many_assignee:
            await self._move(task, ASSIGNED, DONE, TaskNotAssignedError)
        await self._count_finished(task)

        finished = {**entry, "status": DONE, "finishedAt": utcnow().isoformat()}
        user.replace_tasks(
            [finished if e.get("id") == str(task.id) else e for e in user.tasks]
        )

        await self.db.commit()
        logger.info(
            "task_finished",
            task_id=str(task.id),
            user_id=str(user.id),
            has_many_assignee=task.has_many_assignee,
        )
        return task

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _check_lifecycle_fields(self, task: Task, values: dict[str, Any]) -> None:
        """Owners cannot move ``status`` or ``has_many_assignee`` under a taken or done task."""
        changed = [
            field
            for field in ("status", "has_many_assignee")
            if field in values and values[field] != getattr(task, field)
        ]
        if not changed:
            return
        if task.status in (ASSIGNED, DONE) or await self.holders(task):
            raise PreconditionError("Task is taken or done and its status cannot be changed")

    @staticmethod
    def _check_releasable(task: Task) -> None:
        if task.status != ASSIGNED and not task.has_many_assignee:
            raise TaskNotAssignedError()

    @staticmethod
    def _held_entry(task: Task, user: User) -> dict[str, Any]:
        entry = user.find_task(task.id)
        if entry is None or entry.get("status") != ASSIGNED:
            raise TaskNotAssignedError("Task is not assigned to this user")
        return entry

    async def _move(
        self,
        task: Task,
        from_status: str,
        to_status: str,
        error: type[TaskNotAvailableError] | type[TaskNotAssignedError],
    ) -> None:
        """Conditionally move a task between statuses or raise ``error``."""
        result = await self.db.execute(
            update(Task)
            .where(Task.id == task.id, Task.status == from_status)
            .values(status=to_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise error()
        await self.db.refresh(task)

    async def _count_finished(self, task: Task) -> None:
        if task.organization_id is None:
            return
        organization = await self._lock_organization(task.organization_id)
        if organization is None:
            logger.warning(
                "task_organization_missing",
                task_id=str(task.id),
                organization_id=str(task.organization_id),
            )
            return

        key = str(task.id)
        reference = next((ref for ref in organization.tasks or [] if ref.get("id") == key), None)
        # A many-assignee task counts as done once, on its first finish
        if reference is not None and reference.get("status") == DONE:
            return

        organization.task_stats_done += 1
        organization.task_stats_active -= 1
        organization.tasks = [
            {**ref, "status": DONE} if ref.get("id") == key else ref
            for ref in organization.tasks or []
        ]

    async def _lock_organization(self, organization_id: UUID) -> Organization | None:
        result = await self.db.execute(
            select(Organization)
            .where(Organization.id == organization_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()


def _org_reference(task: Task) -> dict[str, Any]:
    return {"id": str(task.id), "title": task.title, "status": task.status}
