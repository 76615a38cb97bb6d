"""Door alarm notifications over Telegram."""

import asyncio
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select

from happytail.models.door_log import DoorLog
from happytail.models.property import ALARM_ENABLED
from happytail.models.user import User
from happytail.services.properties import PropertyStore
from happytail.services.telegram import TelegramClient

logger = structlog.get_logger()


@dataclass
class BroadcastResult:
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class AlarmNotifier:
    """Tells subscribed users about door state changes while the alarm is armed.

    Recipients are resolved inside the request; delivery happens later
    (usually as a background task) and never raises.
    """

    def __init__(self, store: PropertyStore, bot: TelegramClient):
        self.store = store
        self.bot = bot

    async def is_armed(self) -> bool:
        return await self.store.get_flag(ALARM_ENABLED)

    async def recipients(self) -> list[str]:
        """Telegram chat ids to notify, or nothing when the alarm is off."""
        if not await self.is_armed():
            return []
        result = await self.store.db.execute(
            select(User).where(User.telegram_id.is_not(None))
        )
        return [user.telegram_id for user in result.scalars().all() if user.wants_telegram]

    @staticmethod
    def message(door_log: DoorLog) -> str:
        return f"Door is {door_log.state}"

    async def broadcast(self, chat_ids: list[str], text: str) -> BroadcastResult:
        """Send ``text`` to every chat concurrently; failures are logged and skipped."""
        outcome = BroadcastResult()
        if not chat_ids:
            return outcome

        results = await asyncio.gather(
            *(self.bot.send_message(chat_id, text) for chat_id in chat_ids),
            return_exceptions=True,
        )
        for chat_id, result in zip(chat_ids, results):
            if isinstance(result, Exception):
                logger.warning(
                    "alarm_notification_failed",
                    telegram_id=chat_id,
                    error=str(result),
                )
                outcome.failed.append(chat_id)
            else:
                outcome.sent.append(chat_id)

        logger.info(
            "alarm_notifications_sent",
            sent=len(outcome.sent),
            failed=len(outcome.failed),
        )
        return outcome
