"""AllergenAnalyzer — request → retried model call → verdict, then best-effort save."""
import asyncio
import logging
from typing import Callable

from openai import APIConnectionError, RateLimitError

from allergen_bot.analysis.client import AnalysisRequester
from allergen_bot.check_store import CheckStore
from allergen_bot.constants import (
    DEFAULT_MAX_ATTEMPTS,
    IMAGE_ANALYSIS_PLACEHOLDER,
    LOG_ANALYSIS_DONE,
    LOG_ANALYSIS_FAILED,
    LOG_ANALYSIS_START,
    LOG_PERSIST_FAILED,
    MSG_ERR_ANALYZE_IMAGE,
    MSG_ERR_ANALYZE_TEXT,
    MSG_ERR_NETWORK,
    MSG_ERR_RATE_LIMITED,
)
from allergen_bot.errors import AnalysisCancelled, AnalysisError, ErrorKind, StorageError
from allergen_bot.models import (
    AnalysisRequest,
    AnalysisResult,
    CheckOutcome,
    CheckRecord,
    CheckType,
    ImageRequest,
    TextRequest,
)
from allergen_bot.retry import Sleep, retry_with_backoff

logger = logging.getLogger(__name__)


def classify_failure(exc: BaseException, request: AnalysisRequest) -> AnalysisError:
    """Map the last provider failure onto the error kind shown to the user."""
    match exc:
        case RateLimitError():
            return AnalysisError(ErrorKind.RATE_LIMITED, MSG_ERR_RATE_LIMITED)
        case APIConnectionError():
            return AnalysisError(ErrorKind.NETWORK, MSG_ERR_NETWORK)
        case _:
            message = (
                MSG_ERR_ANALYZE_IMAGE if isinstance(request, ImageRequest) else MSG_ERR_ANALYZE_TEXT
            )
            return AnalysisError(ErrorKind.UNRECOVERABLE, message)


def build_record(request: AnalysisRequest, result: AnalysisResult, user_id: str) -> CheckRecord:
    match request:
        case ImageRequest():
            check_type = CheckType.IMAGE
            ingredient_text = result.extracted_text or IMAGE_ANALYSIS_PLACEHOLDER
        case TextRequest(content=content):
            check_type = CheckType.MANUAL
            ingredient_text = content
    return CheckRecord(
        user_id=user_id,
        check_type=check_type,
        ingredient_text=ingredient_text,
        allergens=request.allergens,
        result=CheckOutcome.from_result(result),
    )


class AllergenAnalyzer:
    """Entry point for a single check.

    Calls are independent of each other. Callers must not submit a second
    check for the same user while one is in flight; nothing here prevents it.
    """

    def __init__(
        self,
        image_requester: AnalysisRequester[ImageRequest],
        text_requester: AnalysisRequester[TextRequest],
        store: CheckStore,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_persistence_error: Callable[[StorageError], None] | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self._image_requester = image_requester
        self._text_requester = text_requester
        self._store = store
        self._max_attempts = max_attempts
        self._on_persistence_error = on_persistence_error
        self._sleep = sleep

    def _requester_for(self, request: AnalysisRequest) -> AnalysisRequester:
        match request:
            case ImageRequest():
                return self._image_requester
            case TextRequest():
                return self._text_requester
            case _:
                raise TypeError(f"Unsupported analysis request: {type(request).__name__}")

    async def analyze(
        self,
        request: AnalysisRequest,
        user_id: str | None = None,
        *,
        cancel: asyncio.Event | None = None,
        on_persistence_error: Callable[[StorageError], None] | None = None,
    ) -> AnalysisResult:
        requester = self._requester_for(request)
        kind = CheckType.IMAGE if isinstance(request, ImageRequest) else CheckType.MANUAL
        logger.info(LOG_ANALYSIS_START, kind.value, len(request.allergens))

        try:
            result = await retry_with_backoff(
                lambda: requester.request(request),
                self._max_attempts,
                cancel=cancel,
                sleep=self._sleep,
            )
        except AnalysisCancelled:
            raise
        except Exception as exc:
            logger.error(LOG_ANALYSIS_FAILED, exc)
            raise classify_failure(exc, request) from exc

        logger.info(LOG_ANALYSIS_DONE, result.status.value)

        # cancelled while the last attempt was running: drop the result unsaved
        match cancel:
            case asyncio.Event() as event if event.is_set():
                raise AnalysisCancelled()
            case _:
                pass

        match user_id:
            case str() as uid if uid:
                await self._persist(
                    build_record(request, result, uid),
                    on_persistence_error or self._on_persistence_error,
                )
            case _:
                pass

        return result

    async def _persist(
        self,
        record: CheckRecord,
        report_failure: Callable[[StorageError], None] | None,
    ) -> None:
        try:
            await self._store.save(record.user_id, record)
        except StorageError as exc:
            logger.error(LOG_PERSIST_FAILED, record.user_id, exc)
            match report_failure:
                case None:
                    pass
                case report:
                    report(exc)
