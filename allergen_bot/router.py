"""CheckRouter — command logic for checks and saved history, transport-agnostic."""
import asyncio
import logging
import time

from allergen_bot.analyzer import AllergenAnalyzer
from allergen_bot.check_store import AllergenStore, CheckStore
from allergen_bot.constants import (
    COMING_SOON_ALLERGENS,
    DEFAULT_ALLERGEN,
    DEFAULT_IMAGE_MIME,
    HISTORY_MAX_ENTRIES,
    HISTORY_SNIPPET_LENGTH,
    HISTORY_TIME_FORMAT,
    MAX_IMAGE_BYTES,
    MSG_ALLERGEN_COMING_SOON,
    MSG_ALLERGEN_LOCKED,
    MSG_ALLERGEN_UNKNOWN,
    MSG_ALLERGENS_STATUS,
    MSG_ALLERGENS_UPDATED,
    MSG_ALLERGENS_USAGE,
    MSG_CANCELLED,
    MSG_CANCELLING,
    MSG_CHECK_DELETED,
    MSG_CHECK_NOT_FOUND,
    MSG_CHECKED_FOR,
    MSG_ERR_ALLERGENS_NOT_SAVED,
    MSG_ERR_BUSY,
    MSG_ERR_EMPTY_TEXT,
    MSG_ERR_IMAGE_TOO_LARGE,
    MSG_ERR_NOT_SAVED,
    MSG_ERR_STORAGE,
    MSG_EXTRACTED,
    MSG_FAVORITE_CLEARED,
    MSG_FAVORITE_SET,
    MSG_FAVORITES_EMPTY,
    MSG_FAVORITES_HEADER,
    MSG_FLAGGED,
    MSG_HISTORY_EMPTY,
    MSG_HISTORY_HEADER,
    MSG_HISTORY_LINE,
    MSG_NOTHING_TO_CANCEL,
    MSG_SIGN_IN_REQUIRED,
    SELECTABLE_ALLERGENS,
    SHORT_ID_LENGTH,
    VERDICT_HEADLINES,
)
from allergen_bot.errors import AnalysisCancelled, AnalysisError, StorageError
from allergen_bot.message_handler import ChatMessage
from allergen_bot.models import AnalysisRequest, AnalysisResult, CheckRecord, ImageRequest, TextRequest

logger = logging.getLogger(__name__)


# ── pure helpers (module-level so tests can import them directly) ──────────────


def format_result(result: AnalysisResult, allergens: tuple[str, ...]) -> str:
    lines = [VERDICT_HEADLINES[result.status.value]]
    match result.explanation.strip():
        case "":
            pass
        case text:
            lines.append(text)
    match result.flagged_ingredients:
        case ():
            pass
        case flagged:
            lines.append(MSG_FLAGGED % ", ".join(flagged))
    match result.extracted_text:
        case str() as extracted if extracted.strip():
            lines.append(MSG_EXTRACTED % extracted.strip())
        case _:
            pass
    lines.append(MSG_CHECKED_FOR % ", ".join(allergens))
    return "\n".join(lines)


def format_record(record: CheckRecord) -> str:
    star = "★" if record.is_favorite else "•"
    verdict = "SAFE" if record.result.safe else "NOT SAFE"
    when = time.strftime(HISTORY_TIME_FORMAT, time.localtime(record.timestamp))
    text = record.ingredient_text.replace("\n", " ")
    snippet = text if len(text) <= HISTORY_SNIPPET_LENGTH else text[: HISTORY_SNIPPET_LENGTH - 1] + "…"
    return MSG_HISTORY_LINE % (star, record.id[:SHORT_ID_LENGTH], verdict, snippet, when)


def toggle_allergen(current: tuple[str, ...], action: str, name: str) -> tuple[str, ...] | str:
    """Return the new selection, or a reply explaining why it cannot change."""
    allergen = name.strip().lower()
    match (action, allergen):
        case (_, a) if a == DEFAULT_ALLERGEN:
            return MSG_ALLERGEN_LOCKED % a
        case (_, a) if a in COMING_SOON_ALLERGENS:
            return MSG_ALLERGEN_COMING_SOON % a
        case (_, a) if a not in SELECTABLE_ALLERGENS:
            return MSG_ALLERGEN_UNKNOWN % a
        case ("add", a):
            return (*current, a) if a not in current else current
        case ("remove", a):
            return tuple(x for x in current if x != a)
        case _:
            return MSG_ALLERGENS_USAGE


# ── router ────────────────────────────────────────────────────────────────────


class CheckRouter:
    """Turns chat input into checks and answers history commands with reply text."""

    def __init__(
        self,
        analyzer: AllergenAnalyzer,
        store: CheckStore,
        allergen_store: AllergenStore,
    ) -> None:
        self._analyzer = analyzer
        self._store = store
        self._allergen_store = allergen_store
        self._in_flight: dict[str, asyncio.Event] = {}

    @staticmethod
    def _allergen_key(chat_id: str, user_id: str | None) -> str:
        return user_id or chat_id

    # ── checks ────────────────────────────────────────────────────────────────

    async def handle_text(self, message: ChatMessage) -> str:
        match message.content.strip():
            case "":
                return MSG_ERR_EMPTY_TEXT
            case content:
                allergens = self._allergen_store.get(
                    self._allergen_key(message.chat_id, message.user_id)
                )
                request = TextRequest(content=content, allergens=allergens)
                return await self._run_check(message.chat_id, message.user_id, request)

    async def handle_photo(
        self,
        chat_id: str,
        user_id: str | None,
        image: bytes,
        mime_type: str = DEFAULT_IMAGE_MIME,
    ) -> str:
        match len(image):
            case n if n > MAX_IMAGE_BYTES:
                return MSG_ERR_IMAGE_TOO_LARGE
            case _:
                pass
        allergens = self._allergen_store.get(self._allergen_key(chat_id, user_id))
        request = ImageRequest(image=image, mime_type=mime_type, allergens=allergens)
        return await self._run_check(chat_id, user_id, request)

    def handle_cancel_command(self, chat_id: str) -> str:
        match self._in_flight.get(chat_id):
            case None:
                return MSG_NOTHING_TO_CANCEL
            case event:
                event.set()
                return MSG_CANCELLING

    def is_busy(self, chat_id: str) -> bool:
        return chat_id in self._in_flight

    async def _run_check(
        self, chat_id: str, user_id: str | None, request: AnalysisRequest
    ) -> str:
        match self.is_busy(chat_id):
            case True:
                return MSG_ERR_BUSY
            case False:
                pass

        cancel = asyncio.Event()
        self._in_flight[chat_id] = cancel
        save_failures: list[StorageError] = []
        try:
            result = await self._analyzer.analyze(
                request,
                user_id,
                cancel=cancel,
                on_persistence_error=save_failures.append,
            )
        except AnalysisCancelled:
            return MSG_CANCELLED
        except AnalysisError as exc:
            logger.warning("Check failed (%s): %s", exc.kind.value, exc.__cause__)
            return exc.message
        finally:
            self._in_flight.pop(chat_id, None)

        reply = format_result(result, request.allergens)
        match save_failures:
            case []:
                return reply
            case _:
                return f"{reply}\n\n{MSG_ERR_NOT_SAVED}"

    # ── allergens ─────────────────────────────────────────────────────────────

    def handle_allergens_command(self, chat_id: str, user_id: str | None, args: str) -> str:
        key = self._allergen_key(chat_id, user_id)
        current = self._allergen_store.get(key)
        match args.lower().split():
            case []:
                available = [a for a in SELECTABLE_ALLERGENS if a not in current]
                return MSG_ALLERGENS_STATUS % (
                    ", ".join(current),
                    ", ".join(available) or "-",
                    ", ".join(COMING_SOON_ALLERGENS),
                )
            case [("add" | "remove") as action, name]:
                match toggle_allergen(current, action, name):
                    case str() as reply:
                        return reply
                    case selection:
                        try:
                            updated = self._allergen_store.set(key, selection)
                        except StorageError as exc:
                            logger.error("Saving allergens failed: %s", exc)
                            return MSG_ERR_ALLERGENS_NOT_SAVED
                        return MSG_ALLERGENS_UPDATED % ", ".join(updated)
            case _:
                return MSG_ALLERGENS_USAGE

    # ── saved checks ──────────────────────────────────────────────────────────

    async def handle_history_command(self, user_id: str | None) -> str:
        return await self._list(user_id, favorites=False)

    async def handle_favorites_command(self, user_id: str | None) -> str:
        return await self._list(user_id, favorites=True)

    async def _list(self, user_id: str | None, *, favorites: bool) -> str:
        match user_id:
            case None | "":
                return MSG_SIGN_IN_REQUIRED
            case _:
                pass
        try:
            records = await (
                self._store.list_favorites_by_user(user_id)
                if favorites
                else self._store.list_by_user(user_id)
            )
        except StorageError as exc:
            logger.error("Listing checks failed: %s", exc)
            return MSG_ERR_STORAGE

        match (records, favorites):
            case ([], True):
                return MSG_FAVORITES_EMPTY
            case ([], False):
                return MSG_HISTORY_EMPTY
            case (found, True):
                header = MSG_FAVORITES_HEADER % len(found)
                shown = found
            case (found, False):
                shown = found[:HISTORY_MAX_ENTRIES]
                header = MSG_HISTORY_HEADER % len(shown)
        return header + "\n".join(map(format_record, shown))

    async def _resolve(self, user_id: str, short_id: str) -> CheckRecord | None:
        """Find the user's own check whose id starts with short_id."""
        prefix = short_id.strip().lower()
        matches = [r for r in await self._store.list_by_user(user_id) if r.id.startswith(prefix)]
        match matches:
            case [record]:
                return record
            case _:
                return None

    async def handle_favorite_command(self, user_id: str | None, short_id: str, value: bool) -> str:
        match user_id:
            case None | "":
                return MSG_SIGN_IN_REQUIRED
            case _:
                pass
        try:
            record = await self._resolve(user_id, short_id) if short_id.strip() else None
            match record:
                case None:
                    return MSG_CHECK_NOT_FOUND % short_id
                case record:
                    await self._store.set_favorite(record.id, value)
        except StorageError as exc:
            logger.error("Updating favorite failed: %s", exc)
            return MSG_ERR_STORAGE
        return MSG_FAVORITE_SET if value else MSG_FAVORITE_CLEARED

    async def handle_delete_command(self, user_id: str | None, short_id: str) -> str:
        match user_id:
            case None | "":
                return MSG_SIGN_IN_REQUIRED
            case _:
                pass
        try:
            record = await self._resolve(user_id, short_id) if short_id.strip() else None
            match record:
                case None:
                    return MSG_CHECK_NOT_FOUND % short_id
                case record:
                    await self._store.delete(record.id)
        except StorageError as exc:
            logger.error("Deleting check failed: %s", exc)
            return MSG_ERR_STORAGE
        return MSG_CHECK_DELETED
