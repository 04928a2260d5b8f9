"""In-memory implementation of JobRegistryPort.

Jobs live only as long as the tracker session. Stored jobs are never handed
out directly; callers receive deep copies so the only way to change state is
through `update`.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from cutscene.core.exceptions import InvalidTransitionError
from cutscene.core.interfaces.job_registry import (
    JobRegistryObserver,
    JobRegistryPort,
    Mutation,
)
from cutscene.core.interfaces.clock import ClockPort
from cutscene.core.models.job import Job

logger = logging.getLogger(__name__)


class InMemoryJobRegistry(JobRegistryPort):
    def __init__(self, clock: ClockPort) -> None:
        self._jobs: Dict[str, Job] = {}
        self._order: List[str] = []
        self._observers: List[JobRegistryObserver] = []
        self._clock = clock

    def register(self, job: Job) -> Job:
        if job.id in self._jobs:
            raise ValueError(f"Job already registered: {job.id}")
        stored = job.model_copy(deep=True)
        if not stored.submitted_at:
            stored.submitted_at = self._clock.now()
        stored.updated_at = self._clock.now()
        self._jobs[stored.id] = stored
        self._order.append(stored.id)
        self._notify_registered(stored)
        return stored.model_copy(deep=True)

    def get(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def update(self, job_id: str, mutation: Mutation) -> Optional[Job]:
        current = self._jobs.get(job_id)
        if current is None:
            logger.debug(f"[registry:update] ignored unknown job_id={job_id}")
            return None
        working = current.model_copy(deep=True)
        if callable(mutation):
            mutation(working)
        else:
            for field, value in mutation.items():
                setattr(working, field, value)

        if not current.can_transition_to(working.status):
            raise InvalidTransitionError(job_id, current.status, working.status)
        # created_at is fixed once observed
        if current.created_at is not None:
            working.created_at = current.created_at
        working.updated_at = self._clock.now()

        self._jobs[job_id] = working
        self._notify_updated(current, working)
        return working.model_copy(deep=True)

    def all(self) -> Sequence[Job]:
        return [self._jobs[job_id].model_copy(deep=True) for job_id in reversed(self._order)]

    def subscribe(self, observer: JobRegistryObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._jobs)

    def _notify_registered(self, job: Job) -> None:
        for observer in list(self._observers):
            try:
                observer.on_job_registered(job.model_copy(deep=True))
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_registered failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )

    def _notify_updated(self, old: Job, new: Job) -> None:
        for observer in list(self._observers):
            try:
                observer.on_job_updated(old.model_copy(deep=True), new.model_copy(deep=True))
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_updated failed observer={type(observer).__name__} "
                    f"job_id={new.id} error={exc}"
                )
