"""TelegramClient — event-driven transport via python-telegram-bot."""
import logging
import time
from typing import Awaitable, Callable, Optional

from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import Application, CommandHandler, ContextTypes
from telegram.ext import MessageHandler as TGMessageHandler
from telegram.ext import filters

from allergen_bot.config import Config
from allergen_bot.constants import (
    CMD_ALLERGENS,
    CMD_CANCEL,
    CMD_DELETE,
    CMD_FAVORITE,
    CMD_FAVORITES,
    CMD_HELP,
    CMD_HISTORY,
    CMD_START,
    CMD_UNFAVORITE,
    DEFAULT_IMAGE_MIME,
    MAX_IMAGE_BYTES,
    MSG_BLOCKED_CHAT,
    MSG_ERR_BUSY,
    MSG_ERR_IMAGE_TOO_LARGE,
    MSG_HELP,
    MSG_ID_USAGE,
    MSG_NO_RESPONSE,
    MSG_SEND_FAIL,
    MSG_SEND_OK,
)
from allergen_bot.message_handler import ChatMessage, MessageHandler
from allergen_bot.router import CheckRouter
from allergen_bot.telegram.typing import chat_action

logger = logging.getLogger(__name__)

# (chat_id, user_id, args) -> reply
CommandCallback = Callable[[str, Optional[str], str], Awaitable[str]]


class TelegramClient:

    def __init__(self, config: Config, router: CheckRouter) -> None:
        self._token = config.telegram_bot_token
        self._access = MessageHandler(config.allowed_chat_ids)
        self._router = router
        self._app: Optional[Application] = None

    def run(self) -> None:
        # Concurrent updates let /cancel arrive while a check is still running.
        self._app = Application.builder().token(self._token).concurrent_updates(True).build()
        self._app.add_handler(
            TGMessageHandler(filters.TEXT & ~filters.COMMAND, self._make_text_handler())
        )
        self._app.add_handler(
            TGMessageHandler(filters.PHOTO | filters.Document.IMAGE, self._make_photo_handler())
        )
        self._app.add_handler(CommandHandler([CMD_START, CMD_HELP], self._make_help_handler()))
        list(map(
            lambda pair: self._app.add_handler(CommandHandler(pair[0], self._make_command_handler(pair[1]))),
            self._commands().items(),
        ))
        self._app.run_polling()

    async def send_message(self, to: str, text: str) -> bool:
        match self._app:
            case None:
                logger.error("send_message called before run()")
                return False
            case app:
                try:
                    await app.bot.send_message(chat_id=int(to), text=text)
                    return True
                except Exception as exc:
                    logger.error("Telegram send_message failed: %s", exc)
                    return False

    # ── helpers (also used in tests) ─────────────────────────────────────────

    def _is_allowed(self, update: Update) -> bool:
        if update.effective_chat is None:
            return False
        return self._access.is_allowed(str(update.effective_chat.id))

    @staticmethod
    def _identity(update: Update) -> Optional[str]:
        """Telegram user id, or None for anonymous senders (e.g. channel posts)."""
        match update.effective_user:
            case None:
                return None
            case user:
                return str(user.id)

    def _update_to_message(self, update: Update) -> Optional[ChatMessage]:
        if update.message is None or update.effective_chat is None:
            return None
        msg, chat = update.message, update.effective_chat
        text = (msg.text or "").strip()
        match text:
            case "":
                return None
            case content:
                return ChatMessage(
                    chat_id=str(chat.id),
                    user_id=self._identity(update),
                    content=content,
                )

    @staticmethod
    def _image_source(update: Update):
        """Return (file, size, mime) for a photo or image document, else None."""
        message = update.message
        if message is None:
            return None
        match (message.photo, message.document):
            case ([*_, largest], _):
                return largest, largest.file_size, DEFAULT_IMAGE_MIME
            case (_, doc) if doc is not None:
                return doc, doc.file_size, doc.mime_type or DEFAULT_IMAGE_MIME
            case _:
                return None

    def _commands(self) -> dict[str, CommandCallback]:
        router = self._router

        async def allergens(chat_id: str, user_id: Optional[str], args: str) -> str:
            return router.handle_allergens_command(chat_id, user_id, args)

        async def history(chat_id: str, user_id: Optional[str], args: str) -> str:
            return await router.handle_history_command(user_id)

        async def favorites(chat_id: str, user_id: Optional[str], args: str) -> str:
            return await router.handle_favorites_command(user_id)

        def by_id(command: str, action: Callable[[Optional[str], str], Awaitable[str]]) -> CommandCallback:
            async def _callback(chat_id: str, user_id: Optional[str], args: str) -> str:
                match args.split():
                    case [check_id]:
                        return await action(user_id, check_id)
                    case _:
                        return MSG_ID_USAGE % command
            return _callback

        async def cancel(chat_id: str, user_id: Optional[str], args: str) -> str:
            return router.handle_cancel_command(chat_id)

        return {
            CMD_ALLERGENS: allergens,
            CMD_HISTORY: history,
            CMD_FAVORITES: favorites,
            CMD_FAVORITE: by_id(
                CMD_FAVORITE, lambda uid, cid: router.handle_favorite_command(uid, cid, True)
            ),
            CMD_UNFAVORITE: by_id(
                CMD_UNFAVORITE, lambda uid, cid: router.handle_favorite_command(uid, cid, False)
            ),
            CMD_DELETE: by_id(CMD_DELETE, router.handle_delete_command),
            CMD_CANCEL: cancel,
        }

    # ── internal handler factory ──────────────────────────────────────────────

    def _guard(self, update: Update) -> Optional[str]:
        """Chat id when the update may be answered, else None."""
        match self._is_allowed(update):
            case False:
                chat_id = update.effective_chat.id if update.effective_chat else "?"
                logger.warning(MSG_BLOCKED_CHAT, chat_id)
                return None
            case True:
                return str(update.effective_chat.id)

    def _make_help_handler(self) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            match self._guard(update):
                case None:
                    return
                case chat_id:
                    await self.send_message(chat_id, MSG_HELP)

        return _handler

    def _make_command_handler(self, callback: CommandCallback) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            match self._guard(update):
                case None:
                    return
                case chat_id:
                    args = " ".join(context.args or [])
                    reply = await callback(chat_id, self._identity(update), args)
                    await self.send_message(chat_id, reply)

        return _handler

    def _make_text_handler(self) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            match self._guard(update):
                case None:
                    return
                case _:
                    pass

            msg = self._update_to_message(update)
            match msg:
                case None:
                    return
                case message:
                    await self._process(
                        message.chat_id,
                        context,
                        ChatAction.TYPING,
                        lambda: self._router.handle_text(message),
                    )

        return _handler

    def _make_photo_handler(self) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            match self._guard(update):
                case None:
                    return
                case chat_id:
                    pass

            match self._image_source(update):
                case None:
                    return
                case (_, size, _) if size is not None and size > MAX_IMAGE_BYTES:
                    await self.send_message(chat_id, MSG_ERR_IMAGE_TOO_LARGE)
                    return
                case (source, _, mime_type):
                    pass

            # Refuse before downloading; the router repeats this check on submit.
            match self._router.is_busy(chat_id):
                case True:
                    await self.send_message(chat_id, MSG_ERR_BUSY)
                    return
                case False:
                    pass

            user_id = self._identity(update)

            async def _check() -> str:
                tg_file = await source.get_file()
                image_bytes = bytes(await tg_file.download_as_bytearray())
                return await self._router.handle_photo(chat_id, user_id, image_bytes, mime_type)

            await self._process(chat_id, context, ChatAction.UPLOAD_PHOTO, _check)

        return _handler

    async def _process(
        self,
        chat_id: str,
        context: ContextTypes.DEFAULT_TYPE,
        action: ChatAction,
        produce: Callable[[], Awaitable[str]],
    ) -> None:
        start = time.time()
        async with chat_action(context.bot, chat_id, action):
            response = await produce()

        elapsed = time.time() - start
        match response.strip() if response else "":
            case "":
                logger.warning(MSG_NO_RESPONSE)
            case text:
                success = await self.send_message(chat_id, text)
                match success:
                    case True:
                        logger.info(MSG_SEND_OK, elapsed)
                    case False:
                        logger.error(MSG_SEND_FAIL, elapsed)
