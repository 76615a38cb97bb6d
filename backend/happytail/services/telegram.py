"""Minimal Telegram Bot API client."""

from functools import lru_cache
from typing import Any

import httpx
import structlog

from happytail.config import get_settings

logger = structlog.get_logger()


class TelegramError(Exception):
    """Bot API call failed."""

    def __init__(self, method: str, message: str, status_code: int | None = None):
        self.method = method
        self.status_code = status_code
        super().__init__(f"[{method}] {message}")


class TelegramClient:
    """Calls the Bot API over HTTPS with the configured bot token."""

    def __init__(self, token: str, api_url: str = "https://api.telegram.org", timeout: float = 10.0):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.token)

    async def send_message(
        self,
        chat_id: str | int,
        text: str,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        return await self._call("sendMessage", payload)

    async def set_webhook(self, url: str) -> dict[str, Any]:
        return await self._call("setWebhook", {"url": url})

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.configured:
            raise TelegramError(method, "Bot token is not configured")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.api_url}/bot{self.token}/{method}", json=payload
                )
            except httpx.HTTPError as e:
                raise TelegramError(method, str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200 or not data.get("ok"):
            description = data.get("description", response.text)
            logger.warning(
                "telegram_call_failed",
                method=method,
                status_code=response.status_code,
                description=description,
            )
            raise TelegramError(method, description, response.status_code)

        return data.get("result", {})


def keyboard(*buttons: str) -> dict[str, Any]:
    """One-row reply keyboard that hides after use."""
    return {
        "keyboard": [[{"text": b} for b in buttons]],
        "one_time_keyboard": True,
        "resize_keyboard": True,
    }


@lru_cache
def get_telegram_client() -> TelegramClient:
    settings = get_settings()
    return TelegramClient(
        token=settings.bot_token.get_secret_value(),
        api_url=settings.telegram_api_url,
        timeout=settings.telegram_timeout_seconds,
    )
