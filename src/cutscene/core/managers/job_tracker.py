"""JobTracker: lifecycle of video generation jobs from submit to artifact.

Responsibilities:
1. Submit a prompt to a provider and register the resulting job.
2. Drive one poll tick per job through the PollScheduler.
3. Normalize provider statuses and merge them into the registry.
4. Apply the stall warning and the fallback download policy.
5. Download content exactly once and attach it as the job artifact.
6. Release every artifact when the session closes.

A job only becomes `completed` once its content was downloaded: a provider
reporting completion with content still unavailable keeps the job polling at
the shorter completion cadence.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from cutscene.core.config import TrackerConfig
from cutscene.core.exceptions import (
    ConfigurationError,
    CutsceneError,
    JobNotFoundError,
    NotReady,
    TransientTransportError,
    TransportError,
    ValidationError,
)
from cutscene.core.interfaces.artifact_store import ArtifactStorePort
from cutscene.core.interfaces.clock import ClockPort
from cutscene.core.interfaces.job_registry import JobRegistryObserver, JobRegistryPort
from cutscene.core.interfaces.providers import VideoProviderPort
from cutscene.core.interfaces.retry import RetryPort
from cutscene.core.managers.countdown_presenter import CountdownPresenter, CountdownView
from cutscene.core.managers.event_log import EventLog
from cutscene.core.managers.observers import EventLogObserver
from cutscene.core.managers.policies import FallbackPolicy, StallPolicy
from cutscene.core.managers.poll_scheduler import PollScheduler
from cutscene.core.managers.status_normalization_orchestrator import (
    StatusNormalizationOrchestrator,
)
from cutscene.core.models.artifact import ContentPayload
from cutscene.core.models.event_log import LogEntry, LogLevel
from cutscene.core.models.job import (
    FallbackState,
    GenerationRequest,
    Job,
    Provider,
    RetryPrefill,
    StatusCode,
)
from cutscene.core.models.normalized_status import NormalizedStatus
from cutscene.core.settings import logger


class SubmitOptions(BaseModel):
    """Optional parameters accepted alongside a prompt."""

    provider: Provider = Provider.openai
    model: Optional[str] = None
    seconds: Optional[str] = None
    size: Optional[str] = None
    remix_video_id: Optional[str] = None
    input_reference: Optional[str] = None
    # seconds after creation before forced downloads start for this job
    fallback_after: Optional[float] = Field(default=None, ge=0)


class DownloadReason(StrEnum):
    completion = "completion"
    fallback = "fallback"


class JobTracker:
    """Facade over registry, scheduler, policies and provider adapters.

    Attributes:
        config: Immutable timing configuration
    """

    def __init__(
        self,
        providers: Union[Mapping[Provider, VideoProviderPort], Iterable[VideoProviderPort]],
        registry: JobRegistryPort,
        artifact_store: ArtifactStorePort,
        clock: ClockPort,
        config: Optional[TrackerConfig] = None,
        retry_port: Optional[RetryPort] = None,
        event_log: Optional[EventLog] = None,
        normalizer: Optional[StatusNormalizationOrchestrator] = None,
        presenter: Optional[CountdownPresenter] = None,
        observers: Optional[List[JobRegistryObserver]] = None,
    ) -> None:
        if isinstance(providers, Mapping):
            self._providers: Dict[Provider, VideoProviderPort] = dict(providers)
        else:
            self._providers = {p.name: p for p in providers}
        self._registry = registry
        self._artifacts = artifact_store
        self._clock = clock
        self.config = config or TrackerConfig()
        self._retry = retry_port
        self._event_log = event_log or EventLog()
        self._normalizer = normalizer or StatusNormalizationOrchestrator()
        self._presenter = presenter or CountdownPresenter(
            registry, clock, interval=self.config.countdown_tick
        )
        self._stall = StallPolicy(self.config)
        self._fallback = FallbackPolicy(self.config)
        self._scheduler = PollScheduler(registry, clock, self.poll_tick)
        self._closed = False

        self._unsubscribers: List[Callable[[], None]] = [
            registry.subscribe(EventLogObserver(self._event_log))
        ]
        for observer in observers or []:
            self._unsubscribers.append(registry.subscribe(observer))

    # ---------------- Accessors -----------------
    @property
    def registry(self) -> JobRegistryPort:
        return self._registry

    @property
    def scheduler(self) -> PollScheduler:
        return self._scheduler

    @property
    def presenter(self) -> CountdownPresenter:
        return self._presenter

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def closed(self) -> bool:
        return self._closed

    def jobs(self) -> List[Job]:
        return list(self._registry.all())

    def get(self, job_id: str) -> Job:
        return self._require_job(job_id)

    def logs(self) -> List[LogEntry]:
        return self._event_log.entries()

    def countdowns(self) -> Dict[str, CountdownView]:
        return self._presenter.render()

    def subscribe(self, observer: JobRegistryObserver) -> Callable[[], None]:
        return self._registry.subscribe(observer)

    # ---------------- Lifecycle -----------------
    async def start(self) -> None:
        self._presenter.start()

    async def __aenter__(self) -> "JobTracker":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop all timers and release every artifact. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        await self._scheduler.shutdown()
        await self._presenter.stop()
        released = 0
        for job in self._registry.all():
            if job.artifact is None:
                continue
            self._artifacts.release(job.artifact)
            self._registry.update(job.id, {"artifact": None})
            released += 1
        self._artifacts.close()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        logger.event(logging.INFO, "tracker:close", released_artifacts=released)

    # ---------------- Commands -----------------
    async def submit(self, prompt: str, options: Optional[SubmitOptions] = None) -> str:
        """Create a remote job, register it and arm its first poll.

        Configuration and validation errors are raised before anything is
        registered.
        """
        self._ensure_open()
        options = options or SubmitOptions()
        prompt = (prompt or "").strip()
        if not prompt:
            self._event_log.emit("Cannot launch without a prompt.", LogLevel.error)
            raise ValidationError("Prompt is required.")

        provider = self._providers.get(options.provider)
        if provider is None:
            message = f"Provider '{options.provider}' is not configured."
            self._event_log.emit(f"Launch aborted: {message}", LogLevel.error)
            raise ConfigurationError(message)

        request = GenerationRequest(
            provider=options.provider,
            prompt=prompt,
            model=options.model,
            seconds=options.seconds,
            size=options.size,
            remix_video_id=options.remix_video_id,
            input_reference=options.input_reference,
        )
        self._event_log.emit(f'Dispatching prompt: "{prompt}"')
        logger.info(f"[tracker:submit] provider={provider.name} model={request.model or '-'}")

        try:
            body = await provider.create(request)
            normalized = self._normalizer.normalize_payload(provider.name, body, self._clock.now())
        except CutsceneError as exc:
            self._event_log.emit(f"Launch aborted: {exc.message}", LogLevel.error)
            raise

        job = self._build_job(request, normalized, options)
        self._registry.register(job)
        logger.event(logging.INFO, "tracker:submit", job_id=job.id, status=job.status, provider=job.provider)
        if not job.is_in_terminal_state():
            self._scheduler.start(job.id)
        return job.id

    def force_check(self, job_id: str) -> None:
        """Poll a job now instead of waiting for its timer."""
        job = self._require_job(job_id)
        if job.is_in_terminal_state() or job.artifact is not None:
            self._event_log.emit(
                f"Job {job_id} is already {job.status}; nothing to check.", LogLevel.info, job_id
            )
            return
        self._event_log.emit(f"Checking job {job_id} now.", LogLevel.info, job_id)
        self._scheduler.force_poll(job_id)

    def retry(self, job_id: str) -> RetryPrefill:
        """Return the original parameters of a failed job for resubmission."""
        job = self._require_job(job_id)
        if not job.can_retry:
            raise ValidationError(f"Job {job_id} has not failed; nothing to retry.", job_id=job_id)
        self._event_log.emit("Prompt loaded back into the command deck for retry.", LogLevel.info, job_id)
        return RetryPrefill.from_job(job)

    async def attempt_download(
        self,
        job_id: str,
        mark_completed: bool = True,
        reason: DownloadReason = DownloadReason.completion,
    ) -> bool:
        """Fetch content and attach it as the job artifact.

        Returns True when an artifact was attached. NotReady is a failed
        attempt, never an error. Other errors fail the job on the completion
        path and are only recorded on the fallback path.
        """
        job = self._registry.get(job_id)
        if job is None or job.is_in_terminal_state() or job.artifact is not None:
            return False
        provider = self._providers.get(job.provider)
        if provider is None:
            self._fail(job_id, f"Provider '{job.provider}' is not configured.")
            return False

        fallback = reason == DownloadReason.fallback
        if fallback:
            self._record_fallback_attempt(job_id)

        try:
            payload = await self._fetch_content(provider, job_id, retry=not fallback)
        except NotReady:
            logger.info(f"[tracker:download] not ready job_id={job_id} reason={reason}")
            return False
        except CutsceneError as exc:
            if fallback:
                self._registry.update(job_id, lambda j: setattr(j.fallback, "last_error", exc.message))
                logger.warning(
                    f"[tracker:download] fallback attempt failed job_id={job_id} error={exc.message}"
                )
                return False
            logger.error(f"[tracker:download] failed job_id={job_id} error={exc.message}")
            self._fail(job_id, exc.message)
            return False

        return self._attach(job_id, payload, mark_completed)

    # ---------------- Poll tick -----------------
    async def poll_tick(self, job_id: str) -> Optional[float]:
        """One poll for one job, normally driven by the scheduler.

        Returns the delay before the next tick or None to stop polling.
        """
        job = self._registry.get(job_id)
        if job is None or job.is_in_terminal_state() or job.artifact is not None:
            return None

        self._registry.update(job_id, {"next_poll_at": self._clock.now()})
        self._presenter.clear(job_id)

        provider = self._providers.get(job.provider)
        if provider is None:
            self._fail(job_id, f"Provider '{job.provider}' is not configured.")
            return None

        try:
            raw = await provider.status(job_id)
            normalized = self._normalizer.normalize(raw, self._clock.now())
        except CutsceneError as exc:
            logger.warning(f"[tracker:poll] status fetch failed job_id={job_id} error={exc.message}")
            self._fail(job_id, exc.message)
            return None

        logger.debug(
            f"[tracker:poll] job_id={job_id} raw={normalized.raw_status} "
            f"status={normalized.status} progress={normalized.progress}"
        )
        job = self._merge(job_id, normalized)
        if job is None or self._closed:
            return None

        now = self._clock.now()
        if self._stall.should_warn(job, now, normalized.status):
            self._registry.update(job_id, {"stall_notified": True})
            minutes = int(self.config.stall_threshold // 60)
            self._event_log.emit(
                f"Job {job_id} has been in progress for over {minutes} minutes. Still waiting.",
                LogLevel.warning,
                job_id,
            )

        if normalized.status == StatusCode.completed:
            if await self.attempt_download(job_id, mark_completed=True):
                return None
            return self._completion_not_ready(job_id)

        if job.is_in_terminal_state():
            return None

        if self._fallback.should_attempt(job, now):
            if await self.attempt_download(job_id, mark_completed=True, reason=DownloadReason.fallback):
                return None
            return self.config.fallback_poll_delay
        return self.config.poll_interval

    def _merge(self, job_id: str, normalized: NormalizedStatus) -> Optional[Job]:
        def apply(job: Job) -> None:
            if job.created_at is None:
                job.created_at = normalized.created_at
            if normalized.model and not job.model:
                job.model = normalized.model
            job.provider_status = normalized.raw_status
            job.progress = normalized.progress
            target = normalized.status
            if target == StatusCode.completed:
                # recorded by the download that attaches the artifact
                return
            if target == StatusCode.failed:
                job.status = StatusCode.failed
                job.error_message = normalized.error or "Unknown failure"
                job.next_poll_at = None
                return
            if job.can_transition_to(target):
                job.status = target
            else:
                logger.debug(
                    f"[tracker:merge] ignoring backward status job_id={job_id} "
                    f"current={job.status} reported={target}"
                )

        return self._registry.update(job_id, apply)

    def _completion_not_ready(self, job_id: str) -> Optional[float]:
        job = self._registry.get(job_id)
        if job is None or job.is_in_terminal_state() or self._closed:
            return None
        checks = job.completion_checks + 1
        limit = self.config.completion_retry_limit
        if limit is not None and checks > limit:
            self._fail(
                job_id,
                f"Provider reported completion but the video was not downloadable after {checks} attempts.",
            )
            return None
        self._registry.update(job_id, {"completion_checks": checks})
        logger.info(f"[tracker:poll] completed but content not ready job_id={job_id} checks={checks}")
        return self.config.completion_poll_delay

    # ---------------- Download helpers -----------------
    async def _fetch_content(
        self, provider: VideoProviderPort, job_id: str, retry: bool
    ) -> ContentPayload:
        if not retry or self._retry is None:
            return await provider.content(job_id)

        async def fetch() -> ContentPayload:
            try:
                return await provider.content(job_id)
            except TransportError as exc:
                if exc.is_transient and not isinstance(exc, TransientTransportError):
                    raise TransientTransportError.wrap(exc) from exc
                raise

        return await self._retry.execute(
            fetch,
            attempts=self.config.download_max_retries,
            wait_initial=self.config.download_retry_base_wait,
            wait_max=self.config.download_retry_max_wait,
            exception_types=(TransientTransportError,),
        )

    def _record_fallback_attempt(self, job_id: str) -> None:
        now = self._clock.now()

        def apply(job: Job) -> None:
            job.fallback = FallbackState(
                triggered=True,
                attempt_count=job.fallback.attempt_count + 1,
                last_attempt_at=now,
                last_error=job.fallback.last_error,
                deadline=job.fallback.deadline,
            )

        updated = self._registry.update(job_id, apply)
        if updated is None:
            return
        attempt = updated.fallback.attempt_count
        self._event_log.emit(
            f"Job {job_id} still has no video; forcing a direct download (attempt {attempt}).",
            LogLevel.info,
            job_id,
        )

    def _attach(self, job_id: str, payload: ContentPayload, mark_completed: bool) -> bool:
        if self._closed:
            return False
        artifact = self._artifacts.materialize(job_id, payload)
        previous = []

        def apply(job: Job) -> None:
            if job.artifact is not None:
                previous.append(job.artifact)
            job.artifact = artifact
            if mark_completed:
                job.status = StatusCode.completed
            job.progress = 100
            job.error_message = None
            job.next_poll_at = None

        updated = self._registry.update(job_id, apply)
        if updated is None:
            self._artifacts.release(artifact)
            return False
        for stale in previous:
            self._artifacts.release(stale)
        self._scheduler.cancel(job_id)
        logger.event(logging.INFO, "tracker:download", job_id=job_id, handle=artifact.handle, size=artifact.size)
        return True

    # ---------------- Misc -----------------
    def _fail(self, job_id: str, message: str) -> None:
        job = self._registry.get(job_id)
        if job is None or job.is_in_terminal_state():
            return

        def apply(j: Job) -> None:
            j.status = StatusCode.failed
            j.error_message = message
            j.next_poll_at = None

        self._registry.update(job_id, apply)
        self._scheduler.cancel(job_id)

    def _build_job(
        self, request: GenerationRequest, normalized: NormalizedStatus, options: SubmitOptions
    ) -> Job:
        status = normalized.status
        if status == StatusCode.completed:
            status = StatusCode.in_progress
        deadline = None
        if options.fallback_after is not None:
            deadline = normalized.created_at + options.fallback_after
        return Job(
            id=normalized.job_id,
            provider=request.provider,
            request=request,
            status=status,
            provider_status=normalized.raw_status,
            progress=normalized.progress,
            model=normalized.model or request.model,
            created_at=normalized.created_at,
            submitted_at=self._clock.now(),
            error_message=(normalized.error or "Unknown failure") if status == StatusCode.failed else None,
            fallback=FallbackState(deadline=deadline),
        )

    def _require_job(self, job_id: str) -> Job:
        job = self._registry.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _ensure_open(self) -> None:
        if self._closed:
            raise ValidationError("Tracker session is closed.")
