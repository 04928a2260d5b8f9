from typing import Optional


class CutsceneError(Exception):
    """Base exception for job tracking failures.

    Attributes:
        message: Human-readable error description
        diagnostic: Technical diagnostic information for debugging
        job_id: Optional job identifier
    """
    def __init__(
        self,
        message: str,
        diagnostic: Optional[str] = None,
        job_id: Optional[str] = None
    ):
        self.message = message
        self.diagnostic = diagnostic
        self.job_id = job_id
        super().__init__(message)


class ConfigurationError(CutsceneError):
    """Missing credentials or an unknown provider. The job never starts."""


class ValidationError(CutsceneError):
    """Malformed request or provider payload. Surfaced immediately, never retried."""


class TransportError(CutsceneError):
    """Network or HTTP failure while talking to a provider.

    Attributes:
        status: HTTP status code from the provider (None for connection errors)
        url: Requested URL, if known
    """
    TRANSIENT_STATUSES = {502, 503, 504}

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        url: Optional[str] = None,
        diagnostic: Optional[str] = None,
        job_id: Optional[str] = None,
        timeout: bool = False
    ):
        self.status = status
        self.url = url
        self.timeout = timeout
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_transient(self) -> bool:
        if self.timeout or self.status is None:
            return True
        return self.status in self.TRANSIENT_STATUSES


class TransientTransportError(TransportError):
    """Wrapper marking a transport error the retry adapter may retry."""

    @classmethod
    def wrap(cls, exc: TransportError) -> "TransientTransportError":
        return cls(
            exc.message,
            status=exc.status,
            url=exc.url,
            diagnostic=exc.diagnostic,
            job_id=exc.job_id,
            timeout=exc.timeout,
        )


class NotReady(CutsceneError):
    """Content is not available yet. Drives retry scheduling, never a failure."""

    def __init__(self, job_id: Optional[str] = None, message: str = "Content not ready"):
        super().__init__(message=message, job_id=job_id)


class InvalidTransitionError(CutsceneError):
    """Raised when a job status would move backwards or leave a terminal state."""

    def __init__(self, job_id: str, current: str, requested: str):
        self.current = current
        self.requested = requested
        message = f"Job {job_id} cannot move from {current} to {requested}"
        super().__init__(message=message, job_id=job_id)


class JobNotFoundError(CutsceneError):
    """Raised by tracker operations addressing an unknown job id."""

    def __init__(self, job_id: str):
        super().__init__(message=f"Job '{job_id}' not found", job_id=job_id)
