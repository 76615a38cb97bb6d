"""Organization model."""

from enum import Enum
from typing import Any

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from happytail.db.base import BaseModel, JSONDocument
from happytail.schemas import point


class OrganizationType(str, Enum):
    SHELTER = "shelter"
    GROOMING = "grooming"
    PET_CLINIC = "pet_clinic"


class Organization(BaseModel):
    """Shelter, grooming salon or pet clinic that publishes tasks."""

    __tablename__ = "organizations"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrganizationType.SHELTER.value
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Counters kept in step with the task lifecycle
    task_stats_all: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    task_stats_active: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    task_stats_done: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Embedded {id, title, status} references to tasks created for this organization
    tasks: Mapped[list[dict[str, Any]]] = mapped_column(JSONDocument, nullable=False, default=list)

    @property
    def task_stats(self) -> dict[str, int]:
        return {
            "all": self.task_stats_all or 0,
            "active": self.task_stats_active or 0,
            "done": self.task_stats_done or 0,
        }

    @property
    def location(self) -> dict[str, Any] | None:
        return point(self.latitude, self.longitude)

    def snapshot(self) -> dict[str, Any]:
        """Denormalized copy stored on tasks."""
        return {"id": str(self.id), "title": self.title, "type": self.type}

    def __repr__(self) -> str:
        try:
            return f"<Organization {self.title}>"
        except Exception:
            return f"<Organization id={self.id}>"
