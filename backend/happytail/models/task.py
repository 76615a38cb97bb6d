"""Task model."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happytail.db.base import BaseModel, JSONDocument


class TaskStatus(str, Enum):
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    HIDDEN = "hidden"
    DONE = "done"
    DELETED = "deleted"
    ASSIGNED = "assigned"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    HOT = "hot"
    EXTRA = "extra"


class TaskType(str, Enum):
    AUTO = "auto"
    ANIMALS = "animals"
    REMOTE = "remote"
    DONATE = "donate"
    OTHER = "other"


# Statuses never returned by task listings
HIDDEN_STATUSES = (TaskStatus.HIDDEN.value, TaskStatus.DELETED.value)


class Task(BaseModel):
    """Volunteer task published by an organization."""

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # GeoJSON point: {"type": "Point", "coordinates": [lng, lat]}
    location: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskStatus.AVAILABLE.value, index=True
    )
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TaskPriority.MEDIUM.value
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=TaskType.OTHER.value)

    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Snapshot of the owning organization at creation time
    organization: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)

    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    has_many_assignee: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def reference(self, status: str | None = None) -> dict[str, Any]:
        """Lightweight copy embedded into users and organizations."""
        return {
            "id": str(self.id),
            "title": self.title,
            "status": status or self.status,
            "hasManyAssignee": self.has_many_assignee,
        }

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title} status={self.status}>"
        except Exception:
            return f"<Task id={self.id}>"
