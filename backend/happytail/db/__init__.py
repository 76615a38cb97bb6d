"""Database package."""

from happytail.db.base import Base, BaseModel
from happytail.db.session import get_db_session

__all__ = ["Base", "BaseModel", "get_db_session"]
