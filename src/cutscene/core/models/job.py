from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from cutscene.core.models.artifact import Artifact


class Provider(StrEnum):
    openai = "openai"
    replicate = "replicate"


class StatusCode(StrEnum):
    queued = "queued"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


TERMINAL_STATUSES = {StatusCode.completed, StatusCode.failed}

# Unknown provider statuses pass through the normalizer unchanged; they rank
# alongside in_progress so they can neither regress a job nor end it.
_STATUS_RANK = {
    StatusCode.queued: 0,
    StatusCode.in_progress: 1,
    StatusCode.completed: 2,
    StatusCode.failed: 2,
}
_UNKNOWN_RANK = 1


def status_rank(status: str) -> int:
    return _STATUS_RANK.get(status, _UNKNOWN_RANK)


class FallbackState(BaseModel):
    """Bookkeeping for forced downloads triggered by elapsed time."""

    triggered: bool = False
    attempt_count: int = 0
    last_attempt_at: Optional[float] = None
    last_error: Optional[str] = None
    # per-job override of the default "created_at + fallback_after" deadline
    deadline: Optional[float] = None


class GenerationRequest(BaseModel):
    """Immutable request parameters kept for display and retry."""

    provider: Provider = Provider.openai
    prompt: str
    model: Optional[str] = None
    seconds: Optional[str] = None
    size: Optional[str] = None
    remix_video_id: Optional[str] = None
    input_reference: Optional[str] = None

    model_config = {"frozen": True}


class Job(BaseModel):
    """One tracked video generation request.

    Notes:
    - `id` and `provider` come from the create response and never change.
    - `status` holds the canonical status; `provider_status` keeps the raw
      provider string of the latest poll for diagnostics.
    - `created_at` is whole epoch seconds, fixed at first observation.
    - `next_poll_at` is owned by the scheduler: non-null iff a tick is armed
      or running.
    - `artifact` is attached only by a successful download.
    """

    id: str
    provider: Provider
    request: GenerationRequest

    status: str = StatusCode.queued
    provider_status: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    model: Optional[str] = None
    created_at: Optional[int] = None
    submitted_at: float = 0.0
    updated_at: Optional[float] = None
    error_message: Optional[str] = None

    artifact: Optional[Artifact] = None
    next_poll_at: Optional[float] = None
    stall_notified: bool = False
    fallback: FallbackState = Field(default_factory=FallbackState)
    # completed-but-not-downloadable poll count (bounded by configuration)
    completion_checks: int = 0

    model_config = {"validate_assignment": True}

    @property
    def prompt(self) -> str:
        return self.request.prompt

    def is_in_terminal_state(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, status: str) -> bool:
        """Statuses only move forward and never leave a terminal state."""
        if status == self.status:
            return True
        if self.is_in_terminal_state():
            return False
        return status_rank(status) >= status_rank(self.status)

    @property
    def can_retry(self) -> bool:
        return self.status == StatusCode.failed


class RetryPrefill(BaseModel):
    """Original parameters of a failed job, ready for resubmission."""

    job_id: str
    provider: Provider
    prompt: str
    model: Optional[str] = None
    seconds: Optional[str] = None
    size: Optional[str] = None
    remix_video_id: Optional[str] = None
    input_reference: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> "RetryPrefill":
        return cls(job_id=job.id, **job.request.model_dump())
