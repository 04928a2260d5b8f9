"""JobRegistryPort: hexagonal port for the in-memory job state.

The registry is the single source of truth the presentation layer renders
from. Methods are synchronous on purpose: every mutation is applied as one
read-modify-write step with no await in between, so two coroutines on the
event loop can never interleave partial updates of the same job.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, Union

from cutscene.core.models.job import Job

Mutation = Union[Mapping[str, Any], Callable[[Job], None]]


class JobRegistryObserver(Protocol):
    """Observer protocol for registry mutations.

    - on_job_registered: after a new job is stored
    - on_job_updated: after a stored job changed (old/new are copies)

    Observers are called synchronously from the mutating coroutine and must
    not mutate the registry re-entrantly.
    """

    def on_job_registered(self, job: Job) -> None:
        ...

    def on_job_updated(self, old: Job, new: Job) -> None:
        ...


class JobRegistryPort(ABC):
    """Port abstraction for tracked job state."""

    @abstractmethod
    def register(self, job: Job) -> Job:
        """Store a newly created Job and return a copy of the stored instance."""
        raise NotImplementedError

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        """Return a copy of the Job or None if not found."""
        raise NotImplementedError

    @abstractmethod
    def update(self, job_id: str, mutation: Mutation) -> Optional[Job]:
        """Apply a partial update (field mapping or in-place callable).

        No-op returning None when the job does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def all(self) -> Sequence[Job]:
        """Return copies of all jobs, newest first."""
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, observer: JobRegistryObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        raise NotImplementedError
