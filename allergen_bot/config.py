from dataclasses import dataclass
import os
from dotenv import load_dotenv

from allergen_bot.constants import (
    ALLERGEN_STORE_PATH,
    CHECK_STORE_PATH,
    DEFAULT_MAX_ATTEMPTS,
    OPENAI_TEXT_MODEL,
    OPENAI_TIMEOUT,
    OPENAI_VISION_MODEL,
)


@dataclass(frozen=True)
class Config:
    telegram_bot_token: str
    openai_api_key: str
    allowed_chat_ids: tuple[str, ...]
    log_level: str
    vision_model: str
    text_model: str
    openai_timeout: float
    max_attempts: int
    check_store_path: str
    allergen_store_path: str

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()

        token = os.getenv("TELEGRAM_BOT_TOKEN")
        api_key = os.getenv("OPENAI_API_KEY")
        raw_chat_ids = os.getenv("ALLOWED_CHAT_IDS", "")
        log_level = os.getenv("LOG_LEVEL", "INFO")
        vision_model = os.getenv("OPENAI_VISION_MODEL", OPENAI_VISION_MODEL)
        text_model = os.getenv("OPENAI_TEXT_MODEL", OPENAI_TEXT_MODEL)
        timeout = os.getenv("OPENAI_TIMEOUT", str(OPENAI_TIMEOUT))
        max_attempts = os.getenv("MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))
        check_store_path = os.getenv("CHECK_STORE_PATH", CHECK_STORE_PATH)
        allergen_store_path = os.getenv("ALLERGEN_STORE_PATH", ALLERGEN_STORE_PATH)

        chat_ids = tuple(c.strip() for c in raw_chat_ids.split(",") if c.strip())

        return cls._validate(
            telegram_bot_token=token,
            openai_api_key=api_key,
            allowed_chat_ids=chat_ids,
            log_level=log_level,
            vision_model=vision_model,
            text_model=text_model,
            openai_timeout=float(timeout),
            max_attempts=int(max_attempts),
            check_store_path=check_store_path,
            allergen_store_path=allergen_store_path,
        )

    @staticmethod
    def _validate(
        telegram_bot_token: str | None,
        openai_api_key: str | None,
        allowed_chat_ids: tuple[str, ...],
        log_level: str,
        vision_model: str,
        text_model: str,
        openai_timeout: float,
        max_attempts: int,
        check_store_path: str,
        allergen_store_path: str,
    ) -> "Config":
        match telegram_bot_token:
            case None | "":
                raise ValueError("TELEGRAM_BOT_TOKEN must be set in .env")
            case _:
                pass

        match openai_api_key:
            case None | "":
                raise ValueError("OPENAI_API_KEY must be set in .env")
            case _:
                pass

        match max_attempts:
            case n if n < 1:
                raise ValueError("MAX_ATTEMPTS must be at least 1")
            case _:
                pass

        return Config(
            telegram_bot_token=telegram_bot_token,
            openai_api_key=openai_api_key,
            allowed_chat_ids=allowed_chat_ids,
            log_level=log_level,
            vision_model=vision_model,
            text_model=text_model,
            openai_timeout=openai_timeout,
            max_attempts=max_attempts,
            check_store_path=check_store_path,
            allergen_store_path=allergen_store_path,
        )
