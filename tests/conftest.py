"""Shared test adapters.

These implement the real ports with scripted behavior instead of mocking them,
so the tracker, scheduler and registry run their production code paths.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from cutscene.adapters.artifact_store_tempdir import TempDirArtifactStore
from cutscene.adapters.job_registry_inmemory import InMemoryJobRegistry
from cutscene.core.config import TrackerConfig
from cutscene.core.interfaces.providers import VideoProviderPort
from cutscene.core.managers.job_tracker import JobTracker
from cutscene.core.models.artifact import ContentPayload
from cutscene.core.models.job import GenerationRequest, Provider
from cutscene.core.models.raw_status import RawStatus, parse_raw_status

T0 = 1_700_000_000


class FakeClock:
    def __init__(self, start: float = T0):
        self.current = float(start)

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class ScriptedProvider(VideoProviderPort):
    """Provider whose status and content answers are queued up front.

    Entries may be payloads or exceptions; the last entry repeats once the
    script runs out.
    """

    def __init__(
        self,
        name: Provider = Provider.openai,
        create_response: Optional[Dict[str, Any]] = None,
        statuses: Optional[List[Any]] = None,
        contents: Optional[List[Any]] = None,
    ):
        self.name = name
        self.create_response = create_response or {"id": "job_1", "status": "queued", "created_at": T0}
        self.statuses = list(statuses or [])
        self.contents = list(contents or [])
        self.create_calls: List[GenerationRequest] = []
        self.status_calls: List[str] = []
        self.content_calls: List[str] = []

    @staticmethod
    def _next(script: List[Any]) -> Any:
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def create(self, request: GenerationRequest) -> Dict[str, Any]:
        self.create_calls.append(request)
        if isinstance(self.create_response, Exception):
            raise self.create_response
        return dict(self.create_response)

    async def status(self, job_id: str) -> RawStatus:
        self.status_calls.append(job_id)
        payload = self._next(self.statuses)
        return parse_raw_status(self.name, {"id": job_id, **payload})

    async def content(self, job_id: str) -> ContentPayload:
        self.content_calls.append(job_id)
        return self._next(self.contents)


def video_payload(data: bytes = b"\x00\x00\x00\x18ftypmp42") -> ContentPayload:
    return ContentPayload(data=data, content_type="video/mp4", content_length=len(data))


async def wait_until(predicate, timeout: float = 1.0, interval: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return InMemoryJobRegistry(clock)


@pytest.fixture
def artifact_store(clock, tmp_path):
    return TempDirArtifactStore(clock, str(tmp_path / "artifacts"))


@pytest.fixture
def tracker_config():
    return TrackerConfig()


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
async def tracker(provider, registry, artifact_store, clock, tracker_config):
    jt = JobTracker(
        providers=[provider],
        registry=registry,
        artifact_store=artifact_store,
        clock=clock,
        config=tracker_config,
    )
    yield jt
    await jt.close()


async def submit_paused(tracker: JobTracker, prompt: str = "A", options=None) -> str:
    """Submit without letting the scheduler run; tests drive poll_tick themselves."""
    job_id = await tracker.submit(prompt, options)
    tracker.scheduler.cancel(job_id)
    return job_id
