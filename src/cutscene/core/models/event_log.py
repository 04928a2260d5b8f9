from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field


class LogLevel(StrEnum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class LogEntry(BaseModel):
    id: str
    message: str
    level: LogLevel = LogLevel.info
    job_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}
