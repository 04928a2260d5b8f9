import pytest

from cutscene.core.exceptions import InvalidTransitionError
from cutscene.core.models.job import GenerationRequest, Job, Provider, StatusCode


def make_job(job_id="job_1", **kwargs):
    return Job(id=job_id, provider=Provider.openai, request=GenerationRequest(prompt="A"), **kwargs)


class RecordingObserver:
    def __init__(self):
        self.registered = []
        self.updated = []

    def on_job_registered(self, job):
        self.registered.append(job.id)

    def on_job_updated(self, old, new):
        self.updated.append((old.status, new.status))


class TestRegistry:
    def test_register_and_get_returns_copies(self, registry):
        registry.register(make_job())
        job = registry.get("job_1")
        job.progress = 55
        assert registry.get("job_1").progress == 0

    def test_duplicate_register_rejected(self, registry):
        registry.register(make_job())
        with pytest.raises(ValueError):
            registry.register(make_job())

    def test_update_unknown_is_noop(self, registry):
        assert registry.update("missing", {"progress": 10}) is None
        assert len(registry) == 0

    def test_update_with_mapping_and_callable(self, registry, clock):
        registry.register(make_job())
        clock.advance(5)
        registry.update("job_1", {"progress": 20})
        updated = registry.update("job_1", lambda j: setattr(j, "status", StatusCode.in_progress))
        assert updated.progress == 20
        assert updated.status == StatusCode.in_progress
        assert updated.updated_at == clock.now()

    def test_all_newest_first(self, registry):
        registry.register(make_job("a"))
        registry.register(make_job("b"))
        registry.register(make_job("c"))
        assert [j.id for j in registry.all()] == ["c", "b", "a"]

    def test_created_at_fixed_once_set(self, registry):
        registry.register(make_job(created_at=100))
        updated = registry.update("job_1", {"created_at": 999})
        assert updated.created_at == 100

    def test_created_at_filled_when_missing(self, registry):
        registry.register(make_job())
        assert registry.update("job_1", {"created_at": 42}).created_at == 42


class TestTransitions:
    @pytest.mark.parametrize(
        "current,requested",
        [
            (StatusCode.in_progress, StatusCode.queued),
            (StatusCode.completed, StatusCode.failed),
            (StatusCode.failed, StatusCode.in_progress),
            (StatusCode.completed, StatusCode.queued),
        ],
    )
    def test_invalid_transitions_raise(self, registry, current, requested):
        registry.register(make_job(status=current))
        with pytest.raises(InvalidTransitionError):
            registry.update("job_1", {"status": requested})
        assert registry.get("job_1").status == current

    def test_forward_transitions_allowed(self, registry):
        registry.register(make_job())
        registry.update("job_1", {"status": StatusCode.in_progress})
        assert registry.update("job_1", {"status": StatusCode.completed}).status == StatusCode.completed

    def test_terminal_job_accepts_non_status_updates(self, registry):
        registry.register(make_job(status=StatusCode.completed))
        assert registry.update("job_1", {"next_poll_at": None}).status == StatusCode.completed


class TestObservers:
    def test_observers_notified(self, registry):
        observer = RecordingObserver()
        registry.subscribe(observer)
        registry.register(make_job())
        registry.update("job_1", {"status": StatusCode.in_progress})
        assert observer.registered == ["job_1"]
        assert observer.updated == [(StatusCode.queued, StatusCode.in_progress)]

    def test_unsubscribe(self, registry):
        observer = RecordingObserver()
        unsubscribe = registry.subscribe(observer)
        unsubscribe()
        registry.register(make_job())
        assert observer.registered == []

    def test_failing_observer_does_not_block_others(self, registry):
        class Broken:
            def on_job_registered(self, job):
                raise RuntimeError("observer bug")

            def on_job_updated(self, old, new):
                raise RuntimeError("observer bug")

        observer = RecordingObserver()
        registry.subscribe(Broken())
        registry.subscribe(observer)
        registry.register(make_job())
        registry.update("job_1", {"progress": 3})
        assert observer.registered == ["job_1"]
        assert len(observer.updated) == 1
