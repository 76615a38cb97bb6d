"""User model."""

from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import Float, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happytail.db.base import BaseModel, JSONDocument


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    ORGANIZATION = "organization"


class User(BaseModel):
    """Volunteer, organization staff member or admin.

    ``tasks`` holds lightweight copies of the tasks this user has taken,
    each with its own ``status``; ``task_stats_*`` are derived from it.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.USER.value)

    # Profile
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    picture: Mapped[str | None] = mapped_column(String(500), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    organization_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Telegram
    telegram_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    notifications: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    # OAuth provider ids, e.g. {"vk": "123", "google": "456"}
    services: Mapped[dict[str, str]] = mapped_column(JSONDocument, nullable=False, default=dict)

    # Taken tasks
    tasks: Mapped[list[dict[str, Any]]] = mapped_column(JSONDocument, nullable=False, default=list)
    task_stats_all: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    task_stats_undone: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    task_stats_done: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    @property
    def task_stats(self) -> dict[str, int]:
        return {
            "all": self.task_stats_all or 0,
            "undone": self.task_stats_undone or 0,
            "done": self.task_stats_done or 0,
        }

    @property
    def name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email

    @property
    def wants_telegram(self) -> bool:
        return bool(self.telegram_id) and bool((self.notifications or {}).get("telegram"))

    def find_task(self, task_id: UUID) -> dict[str, Any] | None:
        """Return this user's embedded copy of a task, if any."""
        key = str(task_id)
        for entry in self.tasks or []:
            if entry.get("id") == key:
                return entry
        return None

    def replace_tasks(self, entries: list[dict[str, Any]]) -> None:
        """Assign a new task list and recount the stats derived from it.

        The list is always replaced, never mutated in place, so the change
        is picked up by the unit of work.
        """
        self.tasks = entries
        self.task_stats_all = len(entries)
        self.task_stats_undone = sum(1 for e in entries if e.get("status") == "assigned")
        self.task_stats_done = sum(1 for e in entries if e.get("status") == "done")

    def __repr__(self) -> str:
        try:
            return f"<User {self.email}>"
        except Exception:
            return f"<User id={self.id}>"
