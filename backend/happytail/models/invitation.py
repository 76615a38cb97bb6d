"""Invitation model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happytail.db.base import BaseModel, as_aware, utcnow


class Invitation(BaseModel):
    """Single-use token binding an email to an organization.

    Deleted when redeemed.
    """

    __tablename__ = "invitations"

    token: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @property
    def is_expired(self) -> bool:
        return utcnow() > as_aware(self.expires)

    def __repr__(self) -> str:
        return f"<Invitation {self.email} org={self.organization_id}>"
