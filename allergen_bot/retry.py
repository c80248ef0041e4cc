"""retry_with_backoff — bounded exponential retry around any async operation."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from allergen_bot.constants import DEFAULT_MAX_ATTEMPTS, LOG_RETRY, RETRY_BASE_DELAY
from allergen_bot.errors import AnalysisCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def _cancellable(sleep: Sleep, cancel: asyncio.Event | None) -> Sleep:
    """Wrap sleep so a set cancel event aborts the wait."""

    async def _sleep(seconds: float) -> None:
        match cancel:
            case None:
                await sleep(seconds)
                return
            case event if event.is_set():
                raise AnalysisCancelled()
            case event:
                pass

        waiter = asyncio.ensure_future(event.wait())
        sleeper = asyncio.ensure_future(sleep(seconds))
        try:
            done, _ = await asyncio.wait(
                {waiter, sleeper}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            sleeper.cancel()
        match (waiter in done, sleeper in done):
            case (True, True):
                # retrieve the sleeper's outcome so a failure is not left unread
                sleeper.exception()
                raise AnalysisCancelled()
            case (True, False):
                raise AnalysisCancelled()
            case _:
                sleeper.result()

    return _sleep


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    delay = state.next_action.sleep if state.next_action else 0.0
    logger.warning(LOG_RETRY, state.attempt_number, exc, delay)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    cancel: asyncio.Event | None = None,
    sleep: Sleep | None = None,
    base_delay: float = RETRY_BASE_DELAY,
) -> T:
    """Run operation up to max_attempts times, waiting base_delay * 2**n between tries.

    The last failure is re-raised unchanged. Setting cancel during a wait raises
    AnalysisCancelled instead of starting the next attempt.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay),
        sleep=_cancellable(sleep or asyncio.sleep, cancel),
        before_sleep=_log_retry,
        reraise=True,
    )
    return await retrying(operation)
