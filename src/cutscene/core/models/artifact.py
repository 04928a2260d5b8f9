from typing import Optional

from pydantic import BaseModel


class ContentPayload(BaseModel):
    """Raw media returned by a provider content endpoint."""

    data: bytes
    content_type: str = "video/mp4"
    content_length: Optional[int] = None
    content_disposition: Optional[str] = None


class Artifact(BaseModel):
    """Handle to downloaded media held for a job until released."""

    handle: str
    job_id: str
    path: str
    content_type: str = "video/mp4"
    size: int = 0
    content_disposition: Optional[str] = None
    created_at: float

    model_config = {"frozen": True}
