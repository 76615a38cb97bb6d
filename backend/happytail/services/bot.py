"""Telegram webhook command handling."""

from typing import Any

import structlog
from sqlalchemy import select

from happytail.models.property import ALARM_ENABLED
from happytail.models.user import User
from happytail.services.properties import PropertyStore
from happytail.services.telegram import TelegramClient, TelegramError, keyboard

logger = structlog.get_logger()

NOT_AUTHORIZED = "Sorry, you are not authorized"


class BotCommandHandler:
    """Dispatches ``/start``, ``/on`` and ``/off`` from webhook updates."""

    def __init__(self, store: PropertyStore, bot: TelegramClient):
        self.store = store
        self.bot = bot

    async def handle_update(self, update: dict[str, Any]) -> str | None:
        """Process one update and return the reply sent, if any."""
        message = update.get("message") or update.get("edited_message")
        if not message:
            return None

        text = (message.get("text") or "").strip()
        if not text.startswith("/"):
            return None
        # "/on@HappyTailBot arg" -> "/on"
        command = text.split()[0].split("@")[0].lower()

        sender_id = (message.get("from") or {}).get("id")
        chat_id = (message.get("chat") or {}).get("id", sender_id)
        user = await self.find_user(sender_id)

        reply_markup = None
        if user is None:
            reply = NOT_AUTHORIZED
        elif command == "/start":
            reply = f"Hello, {user.name}"
            reply_markup = keyboard("/on", "/off")
        elif command == "/on":
            await self.store.set_flag(ALARM_ENABLED, True)
            reply = "Alarm has been enabled"
        elif command == "/off":
            await self.store.set_flag(ALARM_ENABLED, False)
            reply = "Alarm has been disabled"
        else:
            return None

        logger.info("bot_command", command=command, telegram_id=str(sender_id))
        try:
            await self.bot.send_message(chat_id, reply, reply_markup=reply_markup)
        except TelegramError as e:
            logger.warning("bot_reply_failed", command=command, error=str(e))
        return reply

    async def find_user(self, telegram_id: Any) -> User | None:
        if telegram_id is None:
            return None
        result = await self.store.db.execute(
            select(User).where(User.telegram_id == str(telegram_id))
        )
        return result.scalars().first()
