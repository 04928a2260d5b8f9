"""Stall and fallback policies evaluated on every poll tick.

Both are pure decisions over a job snapshot and the current time; the tracker
applies their outcome to the registry.
"""

from typing import Optional

from cutscene.core.config import TrackerConfig
from cutscene.core.models.job import Job, StatusCode


class StallPolicy:
    """Warn once when a job stays in progress past the stall threshold."""

    def __init__(self, config: TrackerConfig):
        self._threshold = config.stall_threshold

    def should_warn(self, job: Job, now: float, reported: Optional[str] = None) -> bool:
        """`reported` is the status from the latest poll; a provider saying
        completed while the download lags is not a stall."""
        if job.stall_notified or job.created_at is None:
            return False
        if (reported or job.status) != StatusCode.in_progress:
            return False
        return now - job.created_at > self._threshold


class FallbackPolicy:
    """Force a direct content download when status polling lags behind.

    An attempt is due when the job has no artifact, is not terminal, its
    fallback deadline has passed and the previous attempt is at least
    `fallback_spacing` seconds old.
    """

    def __init__(self, config: TrackerConfig):
        self._after = config.fallback_after
        self._spacing = config.fallback_spacing

    def deadline(self, job: Job) -> Optional[float]:
        if job.fallback.deadline is not None:
            return job.fallback.deadline
        if job.created_at is None:
            return None
        return job.created_at + self._after

    def should_attempt(self, job: Job, now: float) -> bool:
        if job.artifact is not None or job.is_in_terminal_state():
            return False
        deadline = self.deadline(job)
        if deadline is None or now < deadline:
            return False
        last = job.fallback.last_attempt_at
        return last is None or now - last >= self._spacing
