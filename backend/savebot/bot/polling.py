"""Long-polling runner for local use, where no public webhook URL is available."""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from savebot.bot.dispatcher import CommandDispatcher
from savebot.bot.telegram_client import TelegramClient, TelegramError
from savebot.bot.webhook import TelegramUpdate, process_update
from savebot.config import settings
from savebot.logging_config import configure_logging
from savebot.storage import close_goal_store, init_goal_store

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 5


async def poll_once(
    client: TelegramClient,
    dispatcher: CommandDispatcher,
    offset: int | None,
    timeout: int = 30,
) -> int | None:
    """Fetch and handle one batch of updates; returns the next offset."""
    for raw in await client.get_updates(offset=offset, timeout=timeout):
        update_id = raw.get("update_id")
        if isinstance(update_id, int):
            offset = update_id + 1
        try:
            update = TelegramUpdate.model_validate(raw)
        except ValidationError:
            logger.warning("Skipping malformed update %r", update_id)
            continue
        try:
            await process_update(update, dispatcher, client)
        except Exception:
            # The offset already points past this update, so it is not fetched again.
            logger.exception("Failed to handle update %r", update_id)
    return offset


async def run_polling(
    client: TelegramClient,
    dispatcher: CommandDispatcher,
    *,
    timeout: int = 30,
    max_batches: int | None = None,
) -> None:
    """Poll until cancelled (or for `max_batches` batches); updates are handled one at a time."""
    offset: int | None = None
    batches = 0
    while max_batches is None or batches < max_batches:
        batches += 1
        try:
            offset = await poll_once(client, dispatcher, offset, timeout)
        except TelegramError as exc:
            logger.warning("getUpdates failed: %s; retrying in %ss", exc, ERROR_BACKOFF_SECONDS)
            await asyncio.sleep(ERROR_BACKOFF_SECONDS)


def main() -> None:
    configure_logging(settings.log_level)
    if not settings.telegram_bot_token:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set")

    store = init_goal_store()
    client = TelegramClient(token=settings.telegram_bot_token, api_base=settings.telegram_api_base)
    logger.info("Bot is running (long polling)...")
    try:
        asyncio.run(run_polling(client, CommandDispatcher(store)))
    except KeyboardInterrupt:
        logger.info("Stopping bot")
    finally:
        close_goal_store()


if __name__ == "__main__":
    main()
