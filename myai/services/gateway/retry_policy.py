import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from myai.core.errors import UpstreamError


logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunction = Callable[[float], Awaitable[None]]


def is_retryable(error: BaseException) -> bool:
    """
    Network-level failures (no status), 5xx and 429 are transient.
    Every other error, including the remaining 4xx statuses, is terminal.
    """
    if not isinstance(error, UpstreamError):
        return False

    if error.status_code is None:
        return True

    return error.status_code >= 500 or error.status_code == 429


class RetryPolicy:
    """Bounded exponential backoff around upstream calls: waits base_delay * 2^(attempt-1)"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: SleepFunction = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0:
            raise ValueError("base_delay cannot be negative")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay applied after the given (1-based) failed attempt"""
        return self.base_delay * (2 ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "upstream call") -> T:
        """
        Run `operation`, retrying transient failures.
        After the last attempt the original error propagates unchanged.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=lambda retry_state: self._log_retry(description, retry_state),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                result = await operation()
        return result

    def _log_retry(self, description: str, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "%s failed, retrying in %.2fs (attempt %d/%d, status=%s): %s",
            description,
            delay,
            retry_state.attempt_number,
            self.max_attempts,
            getattr(error, "status_code", None),
            error,
        )
