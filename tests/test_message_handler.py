"""TDD: Message handler tests written FIRST"""

import pytest
from allergen_bot.message_handler import MessageHandler, ChatMessage


def test_message_immutable():
    """Test that ChatMessage is frozen"""
    msg = ChatMessage(chat_id="123", user_id="9", content="test")

    with pytest.raises(Exception):
        msg.chat_id = "999"


def test_empty_allow_list_answers_everyone():
    handler = MessageHandler()

    assert handler.is_allowed("555") is True


def test_allowed_chat_passes():
    handler = MessageHandler(allowed_chat_ids=("123", " 456 "))

    assert handler.is_allowed("456") is True


def test_blocked_chat_fails():
    handler = MessageHandler(allowed_chat_ids=("123",))

    assert handler.is_allowed("999") is False
