# cutscene/adapters/web/fastapi.py
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from cutscene.core.exceptions import (
    ConfigurationError,
    CutsceneError,
    JobNotFoundError,
    NotReady,
    TransportError,
    ValidationError,
)
from cutscene.core.interfaces.http_client import HttpClientPort
from cutscene.core.logging_config import correlation_id_var
from cutscene.core.managers.countdown_presenter import CountdownView
from cutscene.core.managers.job_tracker import JobTracker, SubmitOptions
from cutscene.core.models.event_log import LogEntry
from cutscene.core.models.job import Job, Provider, RetryPrefill
from cutscene.core.settings import logger


class SubmitRequest(BaseModel):
    prompt: str
    provider: Provider = Provider.openai
    model: Optional[str] = None
    seconds: Optional[str] = None
    size: Optional[str] = None
    remix_video_id: Optional[str] = None
    input_reference: Optional[str] = None

    def to_options(self) -> SubmitOptions:
        return SubmitOptions(**self.model_dump(exclude={"prompt"}))


class SubmitResponse(BaseModel):
    id: str
    status: str


class JobView(BaseModel):
    job: Job
    countdown: Optional[CountdownView] = None


class JobList(BaseModel):
    jobs: List[JobView]


class LogList(BaseModel):
    logs: List[LogEntry]


class ErrorResponse(BaseModel):
    error: str
    status: int
    diagnostic: Optional[str] = None
    requestId: Optional[str] = None


def error_status(exc: CutsceneError) -> int:
    if isinstance(exc, JobNotFoundError):
        return 404
    if isinstance(exc, NotReady):
        return 404
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, TransportError):
        return exc.status if exc.status and exc.status >= 400 else 502
    return 500


# Driver adapter: depends on the JobTracker facade, the core never imports it.
def create_app(
    tracker_factory: Callable[[HttpClientPort], JobTracker],
    http_client: HttpClientPort,
):
    """Create the FastAPI app.

    The tracker and its collaborators are assembled by the composition root and
    handed over as a factory; the tracker lives exactly as long as the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with http_client as client:
            tracker = tracker_factory(client)
            app.state.tracker = tracker
            async with tracker:
                yield

    app = FastAPI(title="Cutscene Lab", lifespan=lifespan)

    def tracker_of(request: Request) -> JobTracker:
        return request.app.state.tracker

    def view(job: Job, countdowns: Dict[str, CountdownView]) -> JobView:
        return JobView(job=job, countdown=countdowns.get(job.id))

    # Correlation ID middleware: per-request id (header override) exposed to logging
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        cid = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        token = correlation_id_var.set(cid)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers["X-Request-ID"] = cid
        return response

    @app.exception_handler(CutsceneError)
    async def cutscene_exception_handler(request: Request, exc: CutsceneError):
        status_code = error_status(exc)
        body = ErrorResponse(error=exc.message, status=status_code, diagnostic=exc.diagnostic)
        if status_code >= 500:
            body.requestId = correlation_id_var.get()
            logger.error(f"[api:error] {request.method} {request.url.path} status={status_code} error={exc.message}")
        response = JSONResponse(
            status_code=status_code,
            content=jsonable_encoder(body.model_dump(exclude_none=True)),
        )
        if body.requestId:
            response.headers["X-Request-ID"] = body.requestId
        return response

    @app.post("/api/videos", status_code=202, response_model=SubmitResponse)
    async def submit_video(request: Request, body: SubmitRequest):
        tracker = tracker_of(request)
        job_id = await tracker.submit(body.prompt, body.to_options())
        job = tracker.get(job_id)
        return SubmitResponse(id=job.id, status=job.status)

    @app.get("/api/videos", response_model=JobList, response_model_exclude_none=True)
    async def list_videos(request: Request):
        tracker = tracker_of(request)
        countdowns = tracker.countdowns()
        return JobList(jobs=[view(job, countdowns) for job in tracker.jobs()])

    @app.get("/api/videos/{job_id}", response_model=JobView, response_model_exclude_none=True)
    async def get_video(request: Request, job_id: str):
        tracker = tracker_of(request)
        job = tracker.get(job_id)
        return view(job, tracker.countdowns())

    @app.post("/api/videos/{job_id}/check", status_code=202, response_model=SubmitResponse)
    async def check_video(request: Request, job_id: str):
        tracker = tracker_of(request)
        tracker.force_check(job_id)
        job = tracker.get(job_id)
        return SubmitResponse(id=job.id, status=job.status)

    @app.post("/api/videos/{job_id}/retry", response_model=RetryPrefill, response_model_exclude_none=True)
    async def retry_video(request: Request, job_id: str):
        return tracker_of(request).retry(job_id)

    @app.get("/api/videos/{job_id}/content")
    async def get_video_content(request: Request, job_id: str):
        job = tracker_of(request).get(job_id)
        if job.artifact is None:
            raise NotReady(job_id=job_id, message=f"Video for job {job_id} is not available yet.")
        artifact = job.artifact
        headers = {}
        if artifact.content_disposition:
            headers["Content-Disposition"] = artifact.content_disposition
        return FileResponse(artifact.path, media_type=artifact.content_type, headers=headers)

    @app.get("/api/logs", response_model=LogList)
    async def list_logs(request: Request):
        return LogList(logs=tracker_of(request).logs())

    return app
