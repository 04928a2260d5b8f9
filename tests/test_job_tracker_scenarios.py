"""End-to-end lifecycle scenarios for JobTracker.

The tracker runs against ScriptedProvider, the in-memory registry and the
tempdir artifact store. Time-based policies read FakeClock; the poll scheduler
itself uses the running event loop, so scenarios either let it fire the first
(zero delay) tick or submit paused and call `poll_tick` directly.

Scenarios covered:
    1. queued -> in_progress -> completed with one artifact and one success log.
    2. completed but content 404: status unchanged, short re-poll, no failure.
    3. fallback download forced after three minutes; a 404 counts one attempt.
    4. status fetch failure fails the job and stops polling.
"""

import asyncio
import os

import pytest

from conftest import T0, ScriptedProvider, submit_paused, video_payload, wait_until
from cutscene.adapters.artifact_store_tempdir import TempDirArtifactStore
from cutscene.adapters.retry_tenacity import TenacityRetryAdapter
from cutscene.core.config import TrackerConfig
from cutscene.core.exceptions import (
    ConfigurationError,
    JobNotFoundError,
    NotReady,
    TransportError,
    ValidationError,
)
from cutscene.core.managers.job_tracker import DownloadReason, JobTracker, SubmitOptions
from cutscene.core.models.event_log import LogLevel
from cutscene.core.models.job import Provider, StatusCode


def levels(tracker):
    return [entry.level for entry in tracker.logs()]


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_submit_poll_complete(self, tracker, provider, artifact_store):
        provider.statuses = [
            {"status": "in_progress", "progress": 40},
            {"status": "completed"},
        ]
        provider.contents = [video_payload()]

        job_id = await tracker.submit("A")
        assert job_id == "job_1"

        await wait_until(lambda: tracker.get(job_id).progress == 40)
        job = tracker.get(job_id)
        assert job.status == StatusCode.in_progress
        assert job.artifact is None
        assert all(level == LogLevel.info for level in levels(tracker))

        tracker.force_check(job_id)
        await wait_until(lambda: tracker.get(job_id).status == StatusCode.completed)
        await wait_until(lambda: not tracker.scheduler.is_scheduled(job_id))

        job = tracker.get(job_id)
        assert job.progress == 100
        assert job.artifact is not None
        assert job.next_poll_at is None
        assert artifact_store.live_handles == {job.artifact.handle}
        assert levels(tracker).count(LogLevel.success) == 1
        assert LogLevel.error not in levels(tracker)

    @pytest.mark.asyncio
    async def test_logs_are_newest_first(self, tracker, provider):
        provider.statuses = [{"status": "in_progress"}]
        job_id = await submit_paused(tracker)
        messages = [entry.message for entry in tracker.logs()]
        assert messages[0] == f"Job {job_id} queued. Tracking progress."
        assert messages[-1] == 'Dispatching prompt: "A"'


class TestCompletionNotReady:
    @pytest.mark.asyncio
    async def test_completed_without_content_repolls_shortly(self, tracker, provider):
        provider.statuses = [{"status": "completed"}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker)

        delay = await tracker.poll_tick(job_id)

        job = tracker.get(job_id)
        assert delay == 10
        assert job.status == StatusCode.queued
        assert job.error_message is None
        assert job.completion_checks == 1
        assert LogLevel.error not in levels(tracker)

    @pytest.mark.asyncio
    async def test_scheduler_arms_short_repoll(self, tracker, provider, clock):
        provider.statuses = [{"status": "completed"}]
        provider.contents = [NotReady("job_1")]
        job_id = await tracker.submit("A")

        await wait_until(lambda: tracker.get(job_id).next_poll_at == clock.now() + 10)
        assert tracker.scheduler.is_scheduled(job_id)
        assert tracker.get(job_id).status != StatusCode.failed

    @pytest.mark.asyncio
    async def test_retry_limit_fails_job(self, provider, registry, artifact_store, clock):
        provider.statuses = [{"status": "completed"}]
        provider.contents = [NotReady("job_1")]
        tracker = JobTracker(
            [provider], registry, artifact_store, clock,
            config=TrackerConfig(completion_retry_limit=2),
        )
        try:
            job_id = await submit_paused(tracker)
            assert await tracker.poll_tick(job_id) == 10
            assert await tracker.poll_tick(job_id) == 10
            assert await tracker.poll_tick(job_id) is None
            job = tracker.get(job_id)
            assert job.status == StatusCode.failed
            assert "not downloadable" in job.error_message
        finally:
            await tracker.close()

    @pytest.mark.asyncio
    async def test_retry_limit_tolerates_exactly_limit_polls(self, provider, registry, artifact_store, clock):
        provider.statuses = [{"status": "completed"}]
        provider.contents = [NotReady("job_1")]
        tracker = JobTracker(
            [provider], registry, artifact_store, clock,
            config=TrackerConfig(completion_retry_limit=1),
        )
        try:
            job_id = await submit_paused(tracker)
            assert await tracker.poll_tick(job_id) == 10
            assert tracker.get(job_id).status != StatusCode.failed
            assert await tracker.poll_tick(job_id) is None
            job = tracker.get(job_id)
            assert job.status == StatusCode.failed
            assert "after 2 attempts" in job.error_message
            assert len(provider.content_calls) == 2
        finally:
            await tracker.close()

    @pytest.mark.asyncio
    async def test_completion_download_retries_transient_errors(self, provider, registry, artifact_store, clock):
        provider.statuses = [{"status": "completed"}]
        provider.contents = [TransportError("Bad gateway", status=503), video_payload()]
        config = TrackerConfig(download_retry_base_wait=0.001, download_retry_max_wait=0.001)
        tracker = JobTracker(
            [provider], registry, artifact_store, clock,
            config=config, retry_port=TenacityRetryAdapter(),
        )
        try:
            job_id = await submit_paused(tracker)
            assert await tracker.poll_tick(job_id) is None
            assert len(provider.content_calls) == 2
            assert tracker.get(job_id).status == StatusCode.completed
        finally:
            await tracker.close()

    @pytest.mark.asyncio
    async def test_completion_download_error_fails_job(self, tracker, provider):
        provider.statuses = [{"status": "completed"}]
        provider.contents = [TransportError("Forbidden", status=403)]
        job_id = await submit_paused(tracker)

        assert await tracker.poll_tick(job_id) is None
        job = tracker.get(job_id)
        assert job.status == StatusCode.failed
        assert job.error_message == "Forbidden"


class TestFallback:
    @pytest.mark.asyncio
    async def test_fallback_not_ready_counts_attempt(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress", "progress": 70}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker)

        clock.advance(181)
        delay = await tracker.poll_tick(job_id)

        job = tracker.get(job_id)
        assert delay == 15
        assert job.fallback.triggered
        assert job.fallback.attempt_count == 1
        assert job.fallback.last_attempt_at == T0 + 181
        assert job.status == StatusCode.in_progress
        assert job.error_message is None

    @pytest.mark.asyncio
    async def test_no_fallback_before_deadline(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress"}]
        job_id = await submit_paused(tracker)

        clock.advance(179)
        assert await tracker.poll_tick(job_id) == 60
        assert provider.content_calls == []
        assert not tracker.get(job_id).fallback.triggered

    @pytest.mark.asyncio
    async def test_fallback_attempts_are_spaced(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress"}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker)

        clock.advance(181)
        await tracker.poll_tick(job_id)
        clock.advance(10)
        assert await tracker.poll_tick(job_id) == 60
        assert tracker.get(job_id).fallback.attempt_count == 1

        clock.advance(20)
        assert await tracker.poll_tick(job_id) == 15
        assert tracker.get(job_id).fallback.attempt_count == 2

    @pytest.mark.asyncio
    async def test_fallback_error_never_fails_job(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress"}]
        provider.contents = [TransportError("Internal error", status=500)]
        job_id = await submit_paused(tracker)

        clock.advance(200)
        assert await tracker.poll_tick(job_id) == 15
        job = tracker.get(job_id)
        assert job.status == StatusCode.in_progress
        assert job.fallback.last_error == "Internal error"

    @pytest.mark.asyncio
    async def test_fallback_success_completes_job(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress", "progress": 99}]
        provider.contents = [video_payload()]
        job_id = await submit_paused(tracker)

        clock.advance(181)
        assert await tracker.poll_tick(job_id) is None
        job = tracker.get(job_id)
        assert job.status == StatusCode.completed
        assert job.progress == 100
        assert job.artifact is not None

    @pytest.mark.asyncio
    async def test_per_job_deadline_override(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress"}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker, options=SubmitOptions(fallback_after=30))

        clock.advance(31)
        assert await tracker.poll_tick(job_id) == 15
        assert tracker.get(job_id).fallback.attempt_count == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_status_fetch_error_fails_job(self, tracker, provider, clock):
        provider.statuses = [TransportError("Connection refused")]
        job_id = await submit_paused(tracker)

        clock.advance(60)
        assert await tracker.poll_tick(job_id) is None
        job = tracker.get(job_id)
        assert job.status == StatusCode.failed
        assert job.error_message == "Connection refused"
        assert job.next_poll_at is None
        assert tracker.logs()[0].message == f"Job {job_id} failed: Connection refused"

    @pytest.mark.asyncio
    async def test_no_polling_after_fetch_error(self, tracker, provider):
        provider.statuses = [TransportError("Connection refused")]
        job_id = await tracker.submit("A")

        await wait_until(lambda: tracker.get(job_id).status == StatusCode.failed)
        await asyncio.sleep(0.05)
        assert len(provider.status_calls) == 1
        assert not tracker.scheduler.is_scheduled(job_id)

    @pytest.mark.asyncio
    async def test_provider_failure_is_terminal(self, tracker, provider):
        provider.statuses = [
            {"status": "failed", "error": {"code": "moderation_blocked", "message": "Content policy"}}
        ]
        job_id = await submit_paused(tracker)

        assert await tracker.poll_tick(job_id) is None
        job = tracker.get(job_id)
        assert job.status == StatusCode.failed
        assert job.error_message == "Content policy"
        assert provider.content_calls == []

    @pytest.mark.asyncio
    async def test_terminal_job_is_not_polled_again(self, tracker, provider):
        provider.statuses = [{"status": "failed"}]
        job_id = await submit_paused(tracker)
        await tracker.poll_tick(job_id)
        assert await tracker.poll_tick(job_id) is None
        assert len(provider.status_calls) == 1
        assert tracker.get(job_id).error_message == "Unknown failure"


class TestStatusMerge:
    @pytest.mark.asyncio
    async def test_backward_status_is_ignored(self, tracker, provider):
        provider.statuses = [{"status": "in_progress"}, {"status": "queued"}]
        job_id = await submit_paused(tracker)
        await tracker.poll_tick(job_id)
        await tracker.poll_tick(job_id)
        assert tracker.get(job_id).status == StatusCode.in_progress

    @pytest.mark.asyncio
    async def test_unknown_status_passes_through(self, tracker, provider):
        provider.statuses = [{"status": "moderating"}]
        job_id = await submit_paused(tracker)
        assert await tracker.poll_tick(job_id) == 60
        assert tracker.get(job_id).status == "moderating"

    @pytest.mark.asyncio
    async def test_created_at_is_stable(self, tracker, provider):
        provider.statuses = [{"status": "in_progress", "created_at": T0 + 500}]
        job_id = await submit_paused(tracker)
        await tracker.poll_tick(job_id)
        assert tracker.get(job_id).created_at == T0


class TestStall:
    @pytest.mark.asyncio
    async def test_stall_warns_once(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress"}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker)

        clock.advance(601)
        await tracker.poll_tick(job_id)
        clock.advance(60)
        await tracker.poll_tick(job_id)

        assert levels(tracker).count(LogLevel.warning) == 1
        assert tracker.get(job_id).stall_notified

    @pytest.mark.asyncio
    async def test_no_stall_while_queued(self, tracker, provider, clock):
        provider.statuses = [{"status": "queued"}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker)

        clock.advance(601)
        await tracker.poll_tick(job_id)
        assert LogLevel.warning not in levels(tracker)
        assert not tracker.get(job_id).stall_notified

    @pytest.mark.asyncio
    async def test_no_stall_once_provider_reports_completed(self, tracker, provider, clock):
        provider.statuses = [{"status": "in_progress"}, {"status": "completed"}]
        provider.contents = [NotReady("job_1")]
        job_id = await submit_paused(tracker)

        await tracker.poll_tick(job_id)
        clock.advance(601)
        assert await tracker.poll_tick(job_id) == 10

        job = tracker.get(job_id)
        assert job.status == StatusCode.in_progress
        assert LogLevel.warning not in levels(tracker)
        assert not job.stall_notified


class TestSubmit:
    @pytest.mark.asyncio
    async def test_empty_prompt_is_rejected(self, tracker, provider):
        with pytest.raises(ValidationError):
            await tracker.submit("   ")
        assert tracker.jobs() == []
        assert provider.create_calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, tracker):
        with pytest.raises(ConfigurationError):
            await tracker.submit("A", SubmitOptions(provider=Provider.replicate))
        assert tracker.jobs() == []

    @pytest.mark.asyncio
    async def test_create_error_aborts_launch(self, tracker, provider):
        provider.create_response = ConfigurationError("Server is missing OPENAI_API_KEY configuration.")
        with pytest.raises(ConfigurationError):
            await tracker.submit("A")
        assert tracker.jobs() == []
        assert tracker.logs()[0].message.startswith("Launch aborted:")
        assert tracker.logs()[0].level == LogLevel.error

    @pytest.mark.asyncio
    async def test_request_parameters_are_kept(self, tracker, provider):
        options = SubmitOptions(model="sora-2-pro", seconds="12", size="1792x1024")
        job_id = await submit_paused(tracker, "  a lighthouse at dusk ", options)
        job = tracker.get(job_id)
        assert job.prompt == "a lighthouse at dusk"
        assert job.request.seconds == "12"
        assert provider.create_calls[0].model == "sora-2-pro"

    @pytest.mark.asyncio
    async def test_jobs_newest_first(self, tracker, provider):
        provider.create_response = {"id": "job_1", "status": "queued", "created_at": T0}
        await submit_paused(tracker, "first")
        provider.create_response = {"id": "job_2", "status": "queued", "created_at": T0}
        await submit_paused(tracker, "second")
        assert [job.id for job in tracker.jobs()] == ["job_2", "job_1"]


class TestCommands:
    @pytest.mark.asyncio
    async def test_retry_returns_prefill_for_failed_job(self, tracker, provider):
        provider.statuses = [{"status": "failed", "error": "boom"}]
        job_id = await submit_paused(tracker, "retry me", SubmitOptions(seconds="4"))
        await tracker.poll_tick(job_id)

        prefill = tracker.retry(job_id)
        assert prefill.prompt == "retry me"
        assert prefill.seconds == "4"
        assert prefill.provider == Provider.openai

    @pytest.mark.asyncio
    async def test_retry_rejects_active_job(self, tracker):
        job_id = await submit_paused(tracker)
        with pytest.raises(ValidationError):
            tracker.retry(job_id)

    @pytest.mark.asyncio
    async def test_unknown_job(self, tracker):
        with pytest.raises(JobNotFoundError):
            tracker.force_check("nope")
        with pytest.raises(JobNotFoundError):
            tracker.retry("nope")

    @pytest.mark.asyncio
    async def test_force_check_on_settled_job_only_logs(self, tracker, provider):
        provider.statuses = [{"status": "failed"}]
        job_id = await submit_paused(tracker)
        await tracker.poll_tick(job_id)

        tracker.force_check(job_id)
        assert "nothing to check" in tracker.logs()[0].message
        assert not tracker.scheduler.is_scheduled(job_id)

    @pytest.mark.asyncio
    async def test_attempt_download_without_marking_completed(self, tracker, provider):
        provider.contents = [video_payload()]
        job_id = await submit_paused(tracker)

        attached = await tracker.attempt_download(job_id, mark_completed=False, reason=DownloadReason.completion)
        job = tracker.get(job_id)
        assert attached
        assert job.artifact is not None
        assert job.status == StatusCode.queued
        assert job.progress == 100


class TestClose:
    @pytest.mark.asyncio
    async def test_close_releases_artifacts_and_timers(self, provider, registry, artifact_store, clock):
        provider.create_response = {"id": "job_1", "status": "queued", "created_at": T0}
        provider.statuses = [{"status": "completed"}]
        provider.contents = [video_payload()]
        tracker = JobTracker([provider], registry, artifact_store, clock)

        done = await submit_paused(tracker)
        await tracker.poll_tick(done)
        provider.create_response = {"id": "job_2", "status": "queued", "created_at": T0}
        pending = await tracker.submit("B")
        assert tracker.scheduler.is_scheduled(pending)

        await tracker.close()

        assert artifact_store.live_handles == set()
        assert tracker.get(done).artifact is None
        assert tracker.scheduler.pending_count == 0
        assert tracker.get(pending).next_poll_at is None

        with pytest.raises(ValidationError):
            await tracker.submit("C")

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, provider, registry, artifact_store, clock):
        async with JobTracker([provider], registry, artifact_store, clock) as tracker:
            assert tracker.presenter.running
        assert tracker.closed
        assert not tracker.presenter.running


    @pytest.mark.asyncio
    async def test_close_removes_scratch_directory(self, provider, registry, clock):
        store = TempDirArtifactStore(clock)
        provider.statuses = [{"status": "completed"}]
        provider.contents = [video_payload()]
        tracker = JobTracker([provider], registry, store, clock)

        job_id = await submit_paused(tracker)
        await tracker.poll_tick(job_id)
        assert tracker.get(job_id).artifact is not None

        await tracker.close()
        assert not os.path.exists(store.directory)

def test_scripted_provider_is_a_port():
    assert ScriptedProvider().name == Provider.openai
