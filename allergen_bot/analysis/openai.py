"""OpenAI chat-completion requesters for label photos and typed ingredient lists."""
import logging

from openai import AsyncOpenAI

from allergen_bot.analysis.client import AnalysisRequester
from allergen_bot.analysis.normalizer import normalize
from allergen_bot.analysis.prompts import image_messages, text_messages
from allergen_bot.constants import (
    ANALYSIS_TEMPERATURE,
    IMAGE_MAX_TOKENS,
    OPENAI_TEXT_MODEL,
    OPENAI_TIMEOUT,
    OPENAI_VISION_MODEL,
    RESPONSE_FORMAT,
    TEXT_MAX_TOKENS,
)
from allergen_bot.errors import MalformedEnvelopeError
from allergen_bot.models import AnalysisResult, ImageRequest, TextRequest

logger = logging.getLogger(__name__)


async def _complete(
    api_key: str,
    timeout: float,
    *,
    model: str,
    messages: list[dict],
    max_tokens: int,
) -> str:
    # SDK retries are off: retry_with_backoff owns the only retry loop.
    client = AsyncOpenAI(api_key=api_key, max_retries=0, timeout=timeout)
    response = await client.chat.completions.create(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=ANALYSIS_TEMPERATURE,
        response_format=RESPONSE_FORMAT,
    )
    match getattr(response, "choices", None):
        case [first, *_]:
            content = first.message.content
        case _:
            raise MalformedEnvelopeError("completion has no choices")
    match content:
        case str() as text:
            return text.strip()
        case _:
            raise MalformedEnvelopeError("completion has no message content")


class OpenAIImageRequester(AnalysisRequester[ImageRequest]):

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_VISION_MODEL,
        timeout: float = OPENAI_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def request(self, req: ImageRequest) -> AnalysisResult:
        logger.debug("Image request: %d bytes (%s)", len(req.image), req.mime_type)
        raw = await _complete(
            self._api_key,
            self._timeout,
            model=self._model,
            messages=image_messages(req.image, req.mime_type, req.allergens),
            max_tokens=IMAGE_MAX_TOKENS,
        )
        return normalize(raw, keep_raw=True)


class OpenAITextRequester(AnalysisRequester[TextRequest]):

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_TEXT_MODEL,
        timeout: float = OPENAI_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def request(self, req: TextRequest) -> AnalysisResult:
        raw = await _complete(
            self._api_key,
            self._timeout,
            model=self._model,
            messages=text_messages(req.content, req.allergens),
            max_tokens=TEXT_MAX_TOKENS,
        )
        return normalize(raw)
