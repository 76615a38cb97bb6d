"""Services package."""

from happytail.services.accounts import AccountService
from happytail.services.alarm import AlarmNotifier
from happytail.services.bot import BotCommandHandler
from happytail.services.invitations import InvitationService
from happytail.services.properties import PropertyStore
from happytail.services.task_lifecycle import TaskLifecycleService
from happytail.services.telegram import TelegramClient, TelegramError

__all__ = [
    "AccountService",
    "AlarmNotifier",
    "BotCommandHandler",
    "InvitationService",
    "PropertyStore",
    "TaskLifecycleService",
    "TelegramClient",
    "TelegramError",
]
