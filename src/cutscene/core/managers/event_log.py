"""User-facing event log: append-only, newest first."""

import uuid
from typing import Callable, List, Optional

from cutscene.core.models.event_log import LogEntry, LogLevel
from cutscene.core.settings import logger

EventListener = Callable[[LogEntry], None]


class EventLog:
    def __init__(self, max_entries: Optional[int] = None) -> None:
        self._entries: List[LogEntry] = []
        self._listeners: List[EventListener] = []
        self._max_entries = max_entries

    def emit(self, message: str, level: LogLevel = LogLevel.info, job_id: Optional[str] = None) -> LogEntry:
        entry = LogEntry(id=uuid.uuid4().hex[:12], message=message, level=level, job_id=job_id)
        self._entries.insert(0, entry)
        if self._max_entries is not None:
            del self._entries[self._max_entries:]

        line = f"[event:{level}] job_id={job_id or '-'} {message}"
        if level == LogLevel.error:
            logger.error(line)
        elif level == LogLevel.warning:
            logger.warning(line)
        else:
            logger.info(line)

        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as exc:
                logger.error(f"[event:error] listener failed error={exc}")
        return entry

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def for_job(self, job_id: str) -> List[LogEntry]:
        return [e for e in self._entries if e.job_id == job_id]

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._entries)
