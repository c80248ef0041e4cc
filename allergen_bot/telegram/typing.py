"""Telegram chat action — repeats "typing" / "uploading photo" while a check runs."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from telegram import Bot
from telegram.constants import ChatAction

from allergen_bot.constants import TELEGRAM_ACTION_INTERVAL

logger = logging.getLogger(__name__)


async def _keep_acting(bot: Bot, chat_id: str, action: ChatAction, stop: asyncio.Event) -> None:
    while not stop.is_set():
        try:
            await bot.send_chat_action(chat_id=int(chat_id), action=action)
        except Exception as exc:
            logger.debug("Chat action failed: %s", exc)
        try:
            await asyncio.wait_for(stop.wait(), timeout=TELEGRAM_ACTION_INTERVAL)
        except asyncio.TimeoutError:
            pass


@asynccontextmanager
async def chat_action(
    bot: Bot, chat_id: str, action: ChatAction = ChatAction.TYPING
) -> AsyncIterator[None]:
    stop = asyncio.Event()
    task = asyncio.create_task(_keep_acting(bot, chat_id, action, stop))
    try:
        yield
    finally:
        stop.set()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
