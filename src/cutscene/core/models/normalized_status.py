from typing import Optional

from pydantic import BaseModel, Field


class NormalizedStatus(BaseModel):
    """Canonical, provider-agnostic view of one status observation."""

    job_id: str
    status: str
    raw_status: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    model: Optional[str] = None
    created_at: int
    error: Optional[str] = None
