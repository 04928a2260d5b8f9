"""Concrete registry observers.

EventLogObserver turns canonical status transitions into exactly one
user-facing log entry each. Stall and fallback messages are not status
transitions; the tracker emits those directly.
"""

import logging

from cutscene.core.managers.event_log import EventLog
from cutscene.core.models.event_log import LogLevel
from cutscene.core.models.job import Job, StatusCode


logger = logging.getLogger(__name__)


class EventLogObserver:
    def __init__(self, event_log: EventLog):
        self._log = event_log

    def on_job_registered(self, job: Job) -> None:
        if job.status == StatusCode.failed:
            self._log.emit(
                f"Job {job.id} failed: {job.error_message or 'Unknown failure'}",
                LogLevel.error,
                job.id,
            )
            return
        if job.status == StatusCode.queued:
            state = "queued"
        elif job.status == StatusCode.in_progress:
            state = "is rendering"
        else:
            state = f"reported status {job.status}"
        self._log.emit(f"Job {job.id} {state}. Tracking progress.", LogLevel.info, job.id)

    def on_job_updated(self, old: Job, new: Job) -> None:
        if old.status == new.status:
            return
        logger.debug(
            f"[observer:events] status change job_id={new.id} old={old.status} new={new.status}"
        )
        if new.status == StatusCode.completed:
            self._log.emit(f"Job {new.id} completed. Video secured.", LogLevel.success, new.id)
        elif new.status == StatusCode.failed:
            self._log.emit(
                f"Job {new.id} failed: {new.error_message or 'Unknown failure'}",
                LogLevel.error,
                new.id,
            )
        elif new.status == StatusCode.in_progress:
            self._log.emit(f"Job {new.id} is rendering.", LogLevel.info, new.id)
        else:
            self._log.emit(f"Job {new.id} reported status {new.status}.", LogLevel.info, new.id)
