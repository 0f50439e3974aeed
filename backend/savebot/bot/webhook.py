"""Telegram webhook endpoint and the update handling shared with the polling runner."""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from savebot.bot.dispatcher import BotReply, CommandDispatcher
from savebot.bot.telegram_client import TelegramClient, TelegramError
from savebot.config import settings
from savebot.services.goals_service import GoalStore
from savebot.storage import get_goal_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    first_name: str | None = None
    username: str | None = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: TelegramChat
    from_user: TelegramUser | None = Field(default=None, alias="from")
    text: str | None = None


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    from_user: TelegramUser = Field(alias="from")
    message: TelegramMessage | None = None
    data: str | None = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage | None = None
    callback_query: TelegramCallbackQuery | None = None


async def _send_reply(client: TelegramClient, chat_id: int, reply: BotReply) -> None:
    try:
        await client.send_message(chat_id, reply.text, reply.buttons)
    except TelegramError:
        logger.exception("Failed to send reply to chat %s", chat_id)


async def process_update(
    update: TelegramUpdate,
    dispatcher: CommandDispatcher,
    client: TelegramClient,
) -> None:
    """
    Handle one update to completion.

    Delivery failures are logged and not re-raised: the store change already
    happened, and a redelivered update would apply it twice.
    """
    if update.callback_query is not None:
        query = update.callback_query
        reply = dispatcher.handle_callback(query.from_user.id, query.data or "")
        try:
            await client.answer_callback_query(query.id)
        except TelegramError:
            logger.exception("Failed to answer callback query %s", query.id)

        if query.message is not None:
            await _send_reply(client, query.message.chat.id, reply)
        return

    message = update.message
    if message is None or message.from_user is None or not message.text:
        return

    reply = dispatcher.handle_text(message.from_user.id, message.text)
    if reply is None:
        return
    await _send_reply(client, message.chat.id, reply)


def get_telegram_client() -> TelegramClient:
    return TelegramClient(
        token=settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
    )


def get_dispatcher(store: GoalStore = Depends(get_goal_store)) -> CommandDispatcher:
    return CommandDispatcher(store)


@router.post("/webhook")
async def telegram_webhook(
    update: TelegramUpdate,
    secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
    client: TelegramClient = Depends(get_telegram_client),
) -> dict[str, bool]:
    """Receive one Bot API update pushed by Telegram."""
    expected = settings.telegram_webhook_secret
    if expected and not secrets.compare_digest(secret_token or "", expected):
        raise HTTPException(status_code=403, detail="Invalid webhook secret")

    if not client.token:
        raise HTTPException(
            status_code=503,
            detail="Bot is unavailable because TELEGRAM_BOT_TOKEN is not configured.",
        )

    await process_update(update, dispatcher, client)
    return {"ok": True}
