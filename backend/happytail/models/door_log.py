"""Door sensor events."""

from enum import Enum

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from happytail.db.base import BaseModel


class DoorState(str, Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"


class DoorLog(BaseModel):
    """Append-only door state change reported by the sensor."""

    __tablename__ = "door_logs"

    state: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<DoorLog {self.state} at={self.created_at}>"
