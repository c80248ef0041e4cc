from dataclasses import dataclass
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    chat_id: str
    user_id: Optional[str]
    content: str


class MessageHandler:
    """Decides which chats the bot answers. An empty allow-list answers everyone."""

    def __init__(self, allowed_chat_ids: tuple[str, ...] = ()):
        self.allowed_chat_ids = frozenset(c.strip() for c in allowed_chat_ids)

    def is_allowed(self, chat_id: str) -> bool:
        match self.allowed_chat_ids:
            case frozenset() if not self.allowed_chat_ids:
                return True
            case allowed:
                if chat_id.strip() in allowed:
                    return True
                logger.debug(f"Blocked: {chat_id}")
                return False
