"""PollScheduler: the single owner of per-job poll timers.

Every job has at most one pending timer handle or one running tick, never
both. A tick is an awaitable returning the delay before the next tick, or
None to stop polling that job. The scheduler re-arms after the tick
completes, so a tick for a job can never start while another one for the same
job is suspended on a network call.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

from cutscene.core.interfaces.clock import ClockPort
from cutscene.core.interfaces.job_registry import JobRegistryPort
from cutscene.core.logging_config import correlation_id_var
from cutscene.core.settings import logger

Tick = Callable[[str], Awaitable[Optional[float]]]


class PollScheduler:
    def __init__(self, registry: JobRegistryPort, clock: ClockPort, tick: Tick) -> None:
        self._registry = registry
        self._clock = clock
        self._tick = tick
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._running: Dict[str, asyncio.Task] = {}
        # force_poll requests that arrived while a tick was in flight
        self._force_requested: Set[str] = set()
        # cancel() requests that arrived while a tick was in flight
        self._stopped: Set[str] = set()
        self._shutdown = False

    # ---------------- Public API -----------------
    def start(self, job_id: str) -> None:
        """Arm an immediate first poll."""
        if self._shutdown:
            return
        self._stopped.discard(job_id)
        if job_id in self._running:
            self._force_requested.add(job_id)
            return
        self._arm(job_id, 0.0)

    def force_poll(self, job_id: str) -> None:
        """Cancel the pending timer and run the tick now.

        A tick already in flight is not duplicated: the request is remembered
        and honoured by re-arming with zero delay once that tick finishes.
        """
        if self._shutdown:
            return
        self._stopped.discard(job_id)
        if job_id in self._running:
            logger.event(logging.DEBUG, "scheduler:force", job_id=job_id, deferred=True)
            self._force_requested.add(job_id)
            return
        self._cancel_timer(job_id)
        self._registry.update(job_id, {"next_poll_at": self._clock.now()})
        logger.event(logging.DEBUG, "scheduler:force", job_id=job_id, deferred=False)
        self._launch(job_id)

    def cancel(self, job_id: str) -> None:
        """Drop any pending timer; an in-flight tick finishes but is not re-armed."""
        self._cancel_timer(job_id)
        self._force_requested.discard(job_id)
        if job_id in self._running:
            self._stopped.add(job_id)
        self._registry.update(job_id, {"next_poll_at": None})
        logger.event(logging.DEBUG, "scheduler:cancel", job_id=job_id, in_flight=job_id in self._running)

    def is_scheduled(self, job_id: str) -> bool:
        return job_id in self._timers or job_id in self._running

    def is_running(self, job_id: str) -> bool:
        return job_id in self._running

    @property
    def pending_count(self) -> int:
        return len(self._timers) + len(self._running)

    async def shutdown(self) -> None:
        self._shutdown = True
        job_ids = set(self._timers) | set(self._running)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        tasks = list(self._running.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._running.clear()
        self._force_requested.clear()
        self._stopped.clear()
        for job_id in job_ids:
            self._registry.update(job_id, {"next_poll_at": None})
        logger.event(logging.DEBUG, "scheduler:shutdown", jobs=len(job_ids))

    # ---------------- Internals -----------------
    def _arm(self, job_id: str, delay: float) -> None:
        self._cancel_timer(job_id)
        loop = asyncio.get_running_loop()
        self._timers[job_id] = loop.call_later(delay, self._fire, job_id)
        self._registry.update(job_id, {"next_poll_at": self._clock.now() + delay})
        logger.event(logging.DEBUG, "scheduler:arm", job_id=job_id, delay=f"{delay:.1f}s")

    def _cancel_timer(self, job_id: str) -> None:
        handle = self._timers.pop(job_id, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        if self._shutdown:
            return
        self._launch(job_id)

    def _launch(self, job_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._run(job_id), name=f"poll:{job_id}")
        self._running[job_id] = task

    async def _run(self, job_id: str) -> None:
        token = correlation_id_var.set(job_id)
        delay: Optional[float] = None
        try:
            delay = await self._tick(job_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.event(logging.ERROR, "scheduler:tick", job_id=job_id, error=exc)
            delay = None
        finally:
            correlation_id_var.reset(token)
            self._running.pop(job_id, None)
        self._after_tick(job_id, delay)

    def _after_tick(self, job_id: str, delay: Optional[float]) -> None:
        if self._shutdown:
            return
        forced = job_id in self._force_requested
        self._force_requested.discard(job_id)
        if job_id in self._stopped or delay is None:
            self._stopped.discard(job_id)
            self._registry.update(job_id, {"next_poll_at": None})
            logger.event(logging.DEBUG, "scheduler:stop", job_id=job_id)
            return
        self._arm(job_id, 0.0 if forced else delay)
