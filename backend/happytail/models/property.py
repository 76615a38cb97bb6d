"""Global key/value configuration rows."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from happytail.db.base import BaseModel

ALARM_ENABLED = "ALARM_ENABLED"


class Property(BaseModel):
    """A single named setting. At most one row exists per name."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Property {self.name}={self.value!r}>"
