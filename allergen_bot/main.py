"""Entry point — wires Config → requesters → AllergenAnalyzer → CheckRouter → TelegramClient."""
import logging
from pathlib import Path

from rich.logging import RichHandler

from allergen_bot.analysis.openai import OpenAIImageRequester, OpenAITextRequester
from allergen_bot.analyzer import AllergenAnalyzer
from allergen_bot.check_store import AllergenStore, JsonCheckStore
from allergen_bot.config import Config
from allergen_bot.constants import MSG_BOT_STARTING
from allergen_bot.router import CheckRouter
from allergen_bot.telegram.client import TelegramClient


def _setup_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    list(map(root.removeHandler, root.handlers[:]))
    root.addHandler(RichHandler(rich_tracebacks=True))
    # httpx logs every provider request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> None:
    config = Config.from_env()
    _setup_logging(config.log_level)

    logger = logging.getLogger(__name__)
    logger.info(MSG_BOT_STARTING)

    store = JsonCheckStore(Path(config.check_store_path))
    analyzer = AllergenAnalyzer(
        OpenAIImageRequester(
            config.openai_api_key, model=config.vision_model, timeout=config.openai_timeout
        ),
        OpenAITextRequester(
            config.openai_api_key, model=config.text_model, timeout=config.openai_timeout
        ),
        store,
        max_attempts=config.max_attempts,
    )
    router = CheckRouter(analyzer, store, AllergenStore(Path(config.allergen_store_path)))
    TelegramClient(config, router).run()


if __name__ == "__main__":
    main()
