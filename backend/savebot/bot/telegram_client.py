"""Minimal Telegram Bot API wrapper with retry handling."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from savebot.bot.dispatcher import InlineButton

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class TelegramError(Exception):
    """Base exception for Telegram client errors."""


class TelegramRequestError(TelegramError):
    """Raised when a Bot API request fails."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class TelegramResponseError(TelegramError):
    """Raised when a Bot API response cannot be parsed."""


def inline_keyboard(buttons: list[list[InlineButton]]) -> dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": button.text, "callback_data": button.callback_data} for button in row]
            for row in buttons
        ]
    }


class TelegramClient:
    """Thin client for the handful of Bot API methods the bot uses."""

    def __init__(
        self,
        *,
        token: str,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: int = 15,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.transport = transport

    async def send_message(
        self,
        chat_id: int,
        text: str,
        buttons: list[list[InlineButton]] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if buttons:
            body["reply_markup"] = inline_keyboard(buttons)
        return await self._call("sendMessage", body)

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> bool:
        body: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            body["text"] = text
        return bool(await self._call("answerCallbackQuery", body))

    async def get_updates(self, offset: int | None = None, timeout: int = 30) -> list[dict[str, Any]]:
        """Long-poll for updates; the HTTP timeout is stretched past the poll window."""
        body: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            body["offset"] = offset
        result = await self._call("getUpdates", body, timeout_seconds=timeout + self.timeout_seconds)
        if not isinstance(result, list):
            raise TelegramResponseError("getUpdates result is not a list")
        return result

    async def _call(
        self,
        method: str,
        body: dict[str, Any],
        timeout_seconds: int | None = None,
    ) -> Any:
        if not self.token:
            raise TelegramRequestError(401, "TELEGRAM_BOT_TOKEN is not set")

        url = f"{self.api_base}/bot{self.token}/{method}"
        timeout = timeout_seconds or self.timeout_seconds

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                    response = await client.post(url, json=body)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_error = exc
                if attempt < self.max_retries:
                    await asyncio.sleep(0.5 * (2**attempt))
                    continue
                raise TelegramRequestError(503, f"Telegram {method} request failed") from exc

            if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                logger.warning("Telegram %s returned %s; retrying", method, response.status_code)
                await asyncio.sleep(self._retry_delay(response, attempt))
                continue

            try:
                payload = response.json()
            except ValueError as exc:
                if response.status_code >= 400:
                    raise TelegramRequestError(response.status_code, response.text) from exc
                raise TelegramResponseError(f"Invalid JSON from Telegram {method}") from exc

            if not isinstance(payload, dict):
                raise TelegramResponseError(f"Unexpected Telegram {method} payload")

            if response.status_code >= 400 or not payload.get("ok"):
                raise TelegramRequestError(
                    int(payload.get("error_code") or response.status_code),
                    str(payload.get("description") or response.text),
                )

            if "result" not in payload:
                raise TelegramResponseError(f"Telegram {method} response missing result")
            return payload["result"]

        raise TelegramRequestError(503, f"Telegram {method} request failed: {last_error or 'unknown error'}")

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float:
        # 429 responses carry parameters.retry_after in seconds.
        try:
            retry_after = response.json().get("parameters", {}).get("retry_after")
        except (AttributeError, ValueError):
            retry_after = None
        if isinstance(retry_after, (int, float)) and retry_after > 0:
            return float(retry_after)
        return 0.5 * (2**attempt)
