"""Configuration models for core domain components.

This module provides Pydantic-based configuration classes that consolidate
settings for the job tracker, enabling dependency injection and testability.
"""

from typing import Optional
from pydantic import BaseModel, Field


class TrackerConfig(BaseModel):
    """Configuration for JobTracker, PollScheduler and the stall/fallback policies.

    The thresholds are empirical heuristics, not provider guarantees.

    Attributes:
        poll_interval: Seconds between normal status polls
        completion_retry_interval: Upper bound for the re-poll delay after a
            completed status whose content was not downloadable yet
        fallback_retry_interval: Upper bound for the re-poll delay after a tick
            that forced a fallback download
        fallback_after: Seconds after creation before fallback downloads start
        fallback_spacing: Minimum seconds between two fallback attempts
        stall_threshold: Seconds in progress after creation before a stall warning
        countdown_tick: Refresh cadence of the countdown presenter
        completion_retry_limit: Completed-but-not-downloadable polls tolerated
            before the job fails (None polls forever)
    """

    poll_interval: float = Field(
        default=60.0,
        gt=0,
        description="Interval in seconds between remote job status polls"
    )

    completion_retry_interval: float = Field(
        default=10.0,
        gt=0,
        description="Re-poll delay cap when content is not ready after completion"
    )

    fallback_retry_interval: float = Field(
        default=15.0,
        gt=0,
        description="Re-poll delay cap after a tick that forced a fallback download"
    )

    fallback_after: float = Field(
        default=180.0,
        ge=0,
        description="Seconds after job creation before fallback downloads are forced"
    )

    fallback_spacing: float = Field(
        default=30.0,
        ge=0,
        description="Minimum seconds between two fallback download attempts"
    )

    stall_threshold: float = Field(
        default=600.0,
        gt=0,
        description="Seconds in progress after creation before a stall warning is emitted"
    )

    countdown_tick: float = Field(
        default=1.0,
        gt=0,
        description="Refresh cadence in seconds of the countdown presenter"
    )

    completion_retry_limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Completed-but-404 polls tolerated before failing the job (None for no limit)"
    )

    download_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient errors on completion-path downloads"
    )

    download_retry_base_wait: float = Field(
        default=1.0,
        gt=0,
        description="Base wait time in seconds for exponential backoff between download retries"
    )

    download_retry_max_wait: float = Field(
        default=5.0,
        gt=0,
        description="Maximum wait time in seconds between download retries"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @property
    def completion_poll_delay(self) -> float:
        return min(self.completion_retry_interval, self.poll_interval)

    @property
    def fallback_poll_delay(self) -> float:
        return min(self.fallback_retry_interval, self.poll_interval)

    @classmethod
    def from_app_settings(cls, settings) -> "TrackerConfig":
        """Factory method to construct config from a CutsceneSettings instance."""
        return cls(
            poll_interval=settings.CUTSCENE_POLL_INTERVAL,
            completion_retry_interval=settings.CUTSCENE_COMPLETION_RETRY_INTERVAL,
            fallback_retry_interval=settings.CUTSCENE_FALLBACK_RETRY_INTERVAL,
            fallback_after=settings.CUTSCENE_FALLBACK_AFTER,
            fallback_spacing=settings.CUTSCENE_FALLBACK_SPACING,
            stall_threshold=settings.CUTSCENE_STALL_THRESHOLD,
            countdown_tick=settings.CUTSCENE_COUNTDOWN_TICK,
            completion_retry_limit=settings.CUTSCENE_COMPLETION_RETRY_LIMIT,
            # download retry settings use defaults (no settings exist yet)
        )
