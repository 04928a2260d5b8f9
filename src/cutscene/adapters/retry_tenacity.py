import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


def _log_before_sleep(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.debug(
        f"[retry:sleep] attempt={state.attempt_number} "
        f"next_wait={state.next_action.sleep if state.next_action else 0:.2f}s error={exc}"
    )


class TenacityRetryAdapter:
    """Tenacity-based retry adapter implementing RetryPort.

    Only the completion-path content download goes through it; status polls and
    fallback downloads are single attempts. Call-time kwargs can override the
    policy (attempts, wait_initial, wait_max, exception_types).
    """

    def __init__(
        self,
        attempts: int = 3,
        wait_initial: float = 1.0,
        wait_max: float = 5.0,
        exception_types: Sequence[Type[Exception]] = (Exception,),
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.exception_types = tuple(exception_types)

    async def execute(
        self,
        func: Callable[[], Awaitable[Any]],
        *,
        attempts: Optional[int] = None,
        wait_initial: Optional[float] = None,
        wait_max: Optional[float] = None,
        exception_types: Optional[Sequence[Type[BaseException]]] = None,
    ) -> Any:
        attempts = attempts or self.attempts
        wait_initial = wait_initial or self.wait_initial
        wait_max = wait_max or self.wait_max
        exception_types = tuple(exception_types or self.exception_types)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait_initial, max=wait_max),
            retry=retry_if_exception_type(exception_types),
            before_sleep=_log_before_sleep,
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func()
