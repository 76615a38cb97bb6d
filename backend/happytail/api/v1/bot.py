"""Telegram webhook endpoint."""

import secrets
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends

from happytail.api.v1.properties import get_property_store
from happytail.exceptions import NotFoundError
from happytail.services.bot import BotCommandHandler
from happytail.services.properties import PropertyStore
from happytail.services.telegram import TelegramClient, get_telegram_client

router = APIRouter()
logger = structlog.get_logger()


def get_bot_handler(
    store: PropertyStore = Depends(get_property_store),
    bot: TelegramClient = Depends(get_telegram_client),
) -> BotCommandHandler:
    return BotCommandHandler(store, bot)


@router.post("/{token}")
async def telegram_webhook(
    token: str,
    update: dict[str, Any] = Body(...),
    bot: TelegramClient = Depends(get_telegram_client),
    handler: BotCommandHandler = Depends(get_bot_handler),
) -> dict[str, bool]:
    """Receive an update from Telegram.

    The bot token in the path authenticates the caller; anything else is 404.
    """
    if not bot.configured or not secrets.compare_digest(token.encode(), bot.token.encode()):
        raise NotFoundError("Not Found")

    await handler.handle_update(update)
    return {"ok": True}
