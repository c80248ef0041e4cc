"""TDD: TelegramClient tests written FIRST"""
import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

from allergen_bot.config import Config
from allergen_bot.constants import MSG_ERR_BUSY, MSG_ERR_IMAGE_TOO_LARGE, MSG_HELP, MSG_ID_USAGE
from allergen_bot.router import CheckRouter
from allergen_bot.telegram.client import TelegramClient


def make_config(*, chat_ids: tuple[str, ...] = ("123456789",)) -> Config:
    return Config(
        telegram_bot_token="test-token",
        openai_api_key="sk-test",
        allowed_chat_ids=chat_ids,
        log_level="INFO",
        vision_model="gpt-4o",
        text_model="gpt-4o",
        openai_timeout=60.0,
        max_attempts=3,
        check_store_path=".checks.json",
        allergen_store_path=".allergens.json",
    )


def make_router() -> MagicMock:
    router = MagicMock(spec=CheckRouter)
    router.handle_text = AsyncMock(return_value="verdict")
    router.handle_photo = AsyncMock(return_value="photo verdict")
    router.handle_history_command = AsyncMock(return_value="history")
    router.handle_favorite_command = AsyncMock(return_value="fav")
    router.handle_delete_command = AsyncMock(return_value="deleted")
    router.is_busy = MagicMock(return_value=False)
    return router


def make_update(*, chat_id: int, text: str = "", user_id: int | None = 42) -> MagicMock:
    """Build a minimal mock of a python-telegram-bot Update."""
    update = MagicMock()
    update.effective_chat.id = chat_id
    if user_id is None:
        update.effective_user = None
    else:
        update.effective_user.id = user_id
    update.message.text = text
    update.message.photo = ()
    update.message.document = None
    return update


@asynccontextmanager
async def no_chat_action(*_args, **_kwargs):
    yield


# ── allowed-chat filter ───────────────────────────────────────────────────────


def test_allowed_chat_id_passes_filter():
    client = TelegramClient(make_config(), make_router())
    assert client._is_allowed(make_update(chat_id=123456789))


def test_blocked_chat_id_fails_filter():
    client = TelegramClient(make_config(), make_router())
    assert not client._is_allowed(make_update(chat_id=999999999))


def test_empty_allow_list_passes_everyone():
    client = TelegramClient(make_config(chat_ids=()), make_router())
    assert client._is_allowed(make_update(chat_id=999999999))


# ── Update → ChatMessage conversion ─────────────────────────────────────


def test_update_converts_to_chat_message():
    client = TelegramClient(make_config(), make_router())
    update = make_update(chat_id=123456789, text="  wheat flour  ")

    msg = client._update_to_message(update)

    assert msg is not None
    assert msg.chat_id == "123456789"
    assert msg.user_id == "42"
    assert msg.content == "wheat flour"


def test_update_without_user_is_anonymous():
    client = TelegramClient(make_config(), make_router())
    msg = client._update_to_message(make_update(chat_id=123456789, text="sugar", user_id=None))

    assert msg is not None
    assert msg.user_id is None


def test_whitespace_only_message_returns_none():
    client = TelegramClient(make_config(), make_router())
    assert client._update_to_message(make_update(chat_id=123456789, text="   ")) is None


# ── handlers ──────────────────────────────────────────────────────────────────


async def test_text_handler_routes_to_router_and_replies():
    router = make_router()
    client = TelegramClient(make_config(), router)

    with patch("allergen_bot.telegram.client.chat_action", no_chat_action):
        with patch.object(client, "send_message", new_callable=AsyncMock) as mock_send:
            await client._make_text_handler()(make_update(chat_id=123456789, text="sugar"), MagicMock())

    router.handle_text.assert_called_once()
    mock_send.assert_called_once_with("123456789", "verdict")


async def test_blocked_chat_is_ignored():
    router = make_router()
    client = TelegramClient(make_config(), router)

    with patch.object(client, "send_message", new_callable=AsyncMock) as mock_send:
        await client._make_text_handler()(make_update(chat_id=999, text="sugar"), MagicMock())

    router.handle_text.assert_not_called()
    mock_send.assert_not_called()


async def test_photo_handler_downloads_largest_photo():
    router = make_router()
    client = TelegramClient(make_config(), router)
    small, large = MagicMock(file_size=10), MagicMock(file_size=1000)
    tg_file = MagicMock()
    tg_file.download_as_bytearray = AsyncMock(return_value=bytearray(b"jpeg"))
    large.get_file = AsyncMock(return_value=tg_file)
    update = make_update(chat_id=123456789)
    update.message.photo = (small, large)

    with patch("allergen_bot.telegram.client.chat_action", no_chat_action):
        with patch.object(client, "send_message", new_callable=AsyncMock) as mock_send:
            await client._make_photo_handler()(update, MagicMock())

    router.handle_photo.assert_called_once_with("123456789", "42", b"jpeg", "image/jpeg")
    mock_send.assert_called_once_with("123456789", "photo verdict")


async def test_photo_handler_refuses_oversized_before_download():
    router = make_router()
    client = TelegramClient(make_config(), router)
    huge = MagicMock(file_size=6 * 1024 * 1024)
    huge.get_file = AsyncMock()
    update = make_update(chat_id=123456789)
    update.message.photo = (huge,)

    with patch.object(client, "send_message", new_callable=AsyncMock) as mock_send:
        await client._make_photo_handler()(update, MagicMock())

    huge.get_file.assert_not_called()
    mock_send.assert_called_once_with("123456789", MSG_ERR_IMAGE_TOO_LARGE)


async def test_photo_handler_refuses_while_busy():
    router = make_router()
    router.is_busy.return_value = True
    client = TelegramClient(make_config(), router)
    photo = MagicMock(file_size=10)
    photo.get_file = AsyncMock()
    update = make_update(chat_id=123456789)
    update.message.photo = (photo,)

    with patch.object(client, "send_message", new_callable=AsyncMock) as mock_send:
        await client._make_photo_handler()(update, MagicMock())

    photo.get_file.assert_not_called()
    mock_send.assert_called_once_with("123456789", MSG_ERR_BUSY)


async def test_image_document_uses_its_mime_type():
    router = make_router()
    client = TelegramClient(make_config(), router)
    doc = MagicMock(file_size=10, mime_type="image/png")
    tg_file = MagicMock()
    tg_file.download_as_bytearray = AsyncMock(return_value=bytearray(b"png"))
    doc.get_file = AsyncMock(return_value=tg_file)
    update = make_update(chat_id=123456789)
    update.message.document = doc

    with patch("allergen_bot.telegram.client.chat_action", no_chat_action):
        with patch.object(client, "send_message", new_callable=AsyncMock):
            await client._make_photo_handler()(update, MagicMock())

    router.handle_photo.assert_called_once_with("123456789", "42", b"png", "image/png")


# ── commands ──────────────────────────────────────────────────────────────────


async def test_history_command_passes_user_id():
    router = make_router()
    client = TelegramClient(make_config(), router)
    context = MagicMock()
    context.args = []

    with patch.object(client, "send_message", new_callable=AsyncMock) as mock_send:
        handler = client._make_command_handler(client._commands()["history"])
        await handler(make_update(chat_id=123456789), context)

    router.handle_history_command.assert_called_once_with("42")
    mock_send.assert_called_once_with("123456789", "history")


async def test_favorite_command_requires_an_id():
    router = make_router()
    client = TelegramClient(make_config(), router)

    reply = await client._commands()["favorite"]("123456789", "42", "")

    assert reply == MSG_ID_USAGE % "favorite"
    router.handle_favorite_command.assert_not_called()


@pytest.mark.parametrize("command, value", [("favorite", True), ("unfavorite", False)])
async def test_favorite_commands_forward_value(command, value):
    router = make_router()
    client = TelegramClient(make_config(), router)

    await client._commands()[command]("123456789", "42", "abcd1234")

    router.handle_favorite_command.assert_called_once_with("42", "abcd1234", value)


async def test_cancel_command_uses_chat_id():
    router = make_router()
    router.handle_cancel_command = MagicMock(return_value="Check cancelled.")
    client = TelegramClient(make_config(), router)

    assert await client._commands()["cancel"]("123456789", "42", "") == "Check cancelled."
    router.handle_cancel_command.assert_called_once_with("123456789")


# ── /help command ─────────────────────────────────────────────────────────────


def test_help_text_mentions_commands():
    assert "/allergens" in MSG_HELP
    assert "/history" in MSG_HELP
    assert "/cancel" in MSG_HELP
