from typing import Awaitable, Callable, Optional, Protocol, Sequence, Type, TypeVar

T = TypeVar("T")


class RetryPort(Protocol):
    """Retries a zero-argument coroutine factory on selected exceptions.

    The tracker uses it for completion-path content downloads only. Keyword
    overrides replace the adapter's defaults for a single call; after the last
    attempt the final exception propagates unchanged.
    """

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        attempts: Optional[int] = None,
        wait_initial: Optional[float] = None,
        wait_max: Optional[float] = None,
        exception_types: Optional[Sequence[Type[BaseException]]] = None,
    ) -> T:  # pragma: no cover - protocol
        ...
