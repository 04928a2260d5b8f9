"""Fixed-cadence countdown for display.

Runs its own timer, independent of the scheduler, and only reads registry
timestamps. Views live in the presenter, never in the registry, so the
scheduler stays the only writer of `next_poll_at`.
"""

import asyncio
import math
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from cutscene.core.interfaces.clock import ClockPort
from cutscene.core.interfaces.job_registry import JobRegistryPort
from cutscene.core.models.job import Job
from cutscene.core.settings import logger

CountdownListener = Callable[[Dict[str, "CountdownView"]], None]


class CountdownView(BaseModel):
    job_id: str
    elapsed_seconds: Optional[int] = None
    seconds_until_next_poll: Optional[int] = None
    label: Optional[str] = None


def _format_duration(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes}:{secs:02d}"


class CountdownPresenter:
    def __init__(self, registry: JobRegistryPort, clock: ClockPort, interval: float = 1.0) -> None:
        self._registry = registry
        self._clock = clock
        self._interval = interval
        self._views: Dict[str, CountdownView] = {}
        self._listeners: List[CountdownListener] = []
        self._task: Optional[asyncio.Task] = None

    def compute(self, job: Job, now: float) -> CountdownView:
        elapsed = int(now - job.created_at) if job.created_at is not None else None
        if job.next_poll_at is None or job.is_in_terminal_state():
            return CountdownView(job_id=job.id, elapsed_seconds=elapsed)
        remaining = max(0, math.ceil(job.next_poll_at - now))
        label = "Checking now" if remaining == 0 else f"Next check in {_format_duration(remaining)}"
        return CountdownView(
            job_id=job.id,
            elapsed_seconds=elapsed,
            seconds_until_next_poll=remaining,
            label=label,
        )

    def render(self) -> Dict[str, CountdownView]:
        now = self._clock.now()
        self._views = {job.id: self.compute(job, now) for job in self._registry.all()}
        self._publish()
        return dict(self._views)

    def snapshot(self) -> Dict[str, CountdownView]:
        return dict(self._views)

    def clear(self, job_id: str) -> None:
        """Blank a job's countdown; the next render recomputes it."""
        if self._views.pop(job_id, None) is not None:
            self._publish()

    def subscribe(self, listener: CountdownListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop(), name="countdown")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self) -> None:
        while True:
            self.render()
            await asyncio.sleep(self._interval)

    def _publish(self) -> None:
        views = dict(self._views)
        for listener in list(self._listeners):
            try:
                listener(views)
            except Exception as exc:
                logger.error(f"[countdown:error] listener failed error={exc}")
