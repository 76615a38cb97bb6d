"""SQLAlchemy models package."""

from happytail.models.door_log import DoorLog, DoorState
from happytail.models.invitation import Invitation
from happytail.models.organization import Organization, OrganizationType
from happytail.models.property import ALARM_ENABLED, Property
from happytail.models.task import HIDDEN_STATUSES, Task, TaskPriority, TaskStatus, TaskType
from happytail.models.user import User, UserRole

__all__ = [
    "ALARM_ENABLED",
    "HIDDEN_STATUSES",
    "DoorLog",
    "DoorState",
    "Invitation",
    "Organization",
    "OrganizationType",
    "Property",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "User",
    "UserRole",
]
