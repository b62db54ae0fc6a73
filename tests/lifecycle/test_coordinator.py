"""Tests for the index lifecycle coordinator."""

import threading
import time

import pytest

from stack_orchestrator.cancellation import CancellationToken
from stack_orchestrator.exceptions import (
    LifecycleError,
    OperationCancelled,
    PreconditionError,
    RemoteRejection,
    TransientNetworkError,
    WaitTimeoutError,
)
from stack_orchestrator.gate import ServiceGate
from stack_orchestrator.lifecycle import IndexLifecycleCoordinator, RetryPolicy, TaskSnapshot
from stack_orchestrator.models import (
    JobState,
    LifecycleAction,
    LifecycleRequest,
    MediaModel,
    ProbeResult,
    ServiceEndpoint,
)
from stack_orchestrator.retry_loop import RetryLoop

INGESTION = ServiceEndpoint(name="ingestion_server", url="http://localhost:50281/")


class StaticProbe:
    """Probe with a fixed answer."""

    def __init__(self, ready: bool = True):
        self.ready = ready

    def probe(self, endpoint: ServiceEndpoint) -> ProbeResult:
        return ProbeResult(endpoint_name=endpoint.name, ready=self.ready, status_code=200 if self.ready else 503)


class FakeTaskClient:
    """In-memory ingestion server.

    ``failures`` maps an action to a list of exceptions raised by its next
    submissions; ``task_ids`` maps an action to the task id returned on
    acceptance; ``snapshots`` is the script of task status answers.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.submitted: list[LifecycleRequest] = []
        self.failures: dict[LifecycleAction, list[Exception]] = {}
        self.task_ids: dict[LifecycleAction, str] = {}
        self.snapshots: list[TaskSnapshot] = []
        self.status_calls = 0
        self.on_submit = None

    def submit(self, request: LifecycleRequest) -> str | None:
        with self.lock:
            self.submitted.append(request)
            pending = self.failures.get(request.action)
            error = pending.pop(0) if pending else None
        if self.on_submit is not None:
            self.on_submit(request)
        if error is not None:
            raise error
        return self.task_ids.get(request.action)

    def task_status(self, task_id: str) -> TaskSnapshot:
        with self.lock:
            self.status_calls += 1
            if len(self.snapshots) > 1:
                return self.snapshots.pop(0)
            return self.snapshots[0]

    def actions(self) -> list[tuple[str, str, str | None]]:
        with self.lock:
            return [(r.model.value, r.action.value, r.index_suffix) for r in self.submitted]


def running(progress: float = 10) -> TaskSnapshot:
    return TaskSnapshot(state=JobState.RUNNING, progress=progress, detail="task running")


def finished() -> TaskSnapshot:
    return TaskSnapshot(state=JobState.SUCCEEDED, progress=100, detail="task finished")


@pytest.fixture
def gate() -> ServiceGate:
    gate = ServiceGate(StaticProbe(ready=True))
    gate.wait_ready(INGESTION, timeout=1, interval=1)
    return gate


@pytest.fixture
def client() -> FakeTaskClient:
    return FakeTaskClient()


@pytest.fixture
def coordinator(client, gate, clock, token):
    coordinator = IndexLifecycleCoordinator(
        client=client,
        gate=gate,
        ingestion=INGESTION,
        retry_policy=RetryPolicy(max_attempts=3),
        job_poll_interval=5,
        job_timeout=60,
        token=token,
        retry_loop=RetryLoop(clock),
        retry_sleep=lambda seconds: None,
    )
    yield coordinator
    coordinator.shutdown()


class TestGatePrecondition:
    """Test that nothing is issued before the ingestion server is ready."""

    def test_submit_before_gate_ready(self, client, clock, token):
        """Test that requests are refused while the gate has not reported ready."""
        gate = ServiceGate(StaticProbe(ready=False), retry_loop=RetryLoop(clock))
        gate.wait_ready(INGESTION, timeout=0, interval=1, token=token)
        coordinator = IndexLifecycleCoordinator(client=client, gate=gate, ingestion=INGESTION)

        with pytest.raises(PreconditionError, match="ingestion_server"):
            coordinator.ingest_upstream(MediaModel.IMAGE, "init")

        coordinator.shutdown()
        assert client.submitted == []


class TestIngestAndPromote:
    """Test the ingest -> promote ordering."""

    def test_promote_requires_succeeded_ingest(self, coordinator, client):
        """Test that promoting an index never ingested is refused without a remote call."""
        with pytest.raises(PreconditionError, match="INGEST_UPSTREAM"):
            coordinator.promote(MediaModel.IMAGE, "init", "image")

        assert client.submitted == []
        status = coordinator.status(MediaModel.IMAGE, LifecycleAction.PROMOTE, "init")
        assert status.state == JobState.FAILED
        assert coordinator.alias_record(MediaModel.IMAGE, "image") is None

    def test_ingest_then_promote(self, coordinator, client):
        """Test that a succeeded ingest allows promotion and records the alias."""
        job = coordinator.ingest_upstream(MediaModel.IMAGE, "init")
        assert job.result(timeout=5).state == JobState.SUCCEEDED

        status = coordinator.promote(MediaModel.IMAGE, "init", "image")

        assert status.state == JobState.SUCCEEDED
        assert client.actions() == [("image", "INGEST_UPSTREAM", "init"), ("image", "PROMOTE", "init")]
        record = coordinator.alias_record("image", "image")
        assert record.index_suffix == "init"
        assert record.version == 1

    def test_failed_reingest_blocks_promotion(self, coordinator, client):
        """Test that only the latest ingest of an index allows promotion."""
        coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)
        client.failures[LifecycleAction.INGEST_UPSTREAM] = [RemoteRejection("boom", 400)]

        with pytest.raises(RemoteRejection):
            coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)

        with pytest.raises(PreconditionError, match="INGEST_UPSTREAM"):
            coordinator.promote(MediaModel.IMAGE, "init", "image")
        assert [action for _, action, _ in client.actions()] == ["INGEST_UPSTREAM", "INGEST_UPSTREAM"]
        assert coordinator.alias_record(MediaModel.IMAGE, "image") is None

    def test_promote_is_idempotent(self, coordinator):
        """Test that promoting the same index twice keeps the alias version."""
        coordinator.ingest_upstream(MediaModel.AUDIO, "init").result(timeout=5)

        coordinator.promote(MediaModel.AUDIO, "init", "audio")
        coordinator.promote(MediaModel.AUDIO, "init", "audio")

        assert coordinator.alias_record(MediaModel.AUDIO, "audio").version == 1

    def test_repoint_alias_bumps_version(self, coordinator):
        """Test that promoting a new index moves the alias to the next version."""
        coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)
        coordinator.ingest_upstream(MediaModel.IMAGE, "v2").result(timeout=5)

        coordinator.promote(MediaModel.IMAGE, "init", "image")
        coordinator.promote(MediaModel.IMAGE, "v2", "image")

        record = coordinator.alias_record(MediaModel.IMAGE, "image")
        assert record.index_suffix == "v2"
        assert record.version == 2

    def test_queued_promote_runs_after_ingest(self, coordinator, client):
        """Test that jobs of one model run in submission order."""
        ingest = coordinator.ingest_upstream(MediaModel.IMAGE, "init")
        promote = coordinator.submit(
            LifecycleRequest(model=MediaModel.IMAGE, action=LifecycleAction.PROMOTE, index_suffix="init", alias="image")
        )

        assert promote.result(timeout=5).state == JobState.SUCCEEDED
        assert ingest.done()
        assert [action for _, action, _ in client.actions()] == ["INGEST_UPSTREAM", "PROMOTE"]

    def test_adopted_index_can_be_promoted(self, coordinator, client):
        """Test that an index built by an earlier run can be promoted."""
        adopted = coordinator.adopt_ingest(MediaModel.IMAGE, "init")

        coordinator.promote(MediaModel.IMAGE, "init", "image")

        assert adopted.state == JobState.SUCCEEDED
        assert client.actions() == [("image", "PROMOTE", "init")]

    def test_load_test_data_is_independent(self, coordinator, client):
        """Test that QA data loading needs no prior ingest."""
        status = coordinator.load_test_data("audio")

        assert status.state == JobState.SUCCEEDED
        assert client.submitted[0].to_payload() == {"model": "audio", "action": "LOAD_TEST_DATA"}


class TestRemoteTasks:
    """Test polling of remote ingestion tasks."""

    def test_ingest_polls_until_finished(self, coordinator, client, token):
        """Test that an ingest with a task id waits for the remote task."""
        client.task_ids[LifecycleAction.INGEST_UPSTREAM] = "task-1"
        client.snapshots = [running(10), running(60), finished()]

        status = coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)

        assert status.state == JobState.SUCCEEDED
        assert status.task_id == "task-1"
        assert status.progress == 100
        assert client.status_calls == 3
        assert token.waits == [5, 5]

    def test_remote_failure_fails_ingest(self, coordinator, client):
        """Test that a task reporting an error fails the job and blocks promotion."""
        client.task_ids[LifecycleAction.INGEST_UPSTREAM] = "task-1"
        client.snapshots = [running(), TaskSnapshot(state=JobState.FAILED, detail="disk full")]

        with pytest.raises(LifecycleError) as exc_info:
            coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)

        assert isinstance(exc_info.value.cause, RemoteRejection)
        assert "disk full" in str(exc_info.value)
        with pytest.raises(PreconditionError):
            coordinator.promote(MediaModel.IMAGE, "init", "image")

    def test_remote_task_timeout(self, coordinator, client):
        """Test that a task running past the job timeout fails the job."""
        client.task_ids[LifecycleAction.INGEST_UPSTREAM] = "task-1"
        client.snapshots = [running()]

        job = coordinator.ingest_upstream(MediaModel.AUDIO, "init")

        with pytest.raises(WaitTimeoutError):
            job.result(timeout=5)
        assert job.status.state == JobState.FAILED


class TestRetries:
    """Test handling of transient and terminal remote failures."""

    def test_transient_failures_are_retried(self, coordinator, client):
        """Test that a call succeeding within the retry budget succeeds."""
        client.failures[LifecycleAction.INGEST_UPSTREAM] = [TransientNetworkError("unavailable", 503)] * 2

        status = coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)

        assert status.state == JobState.SUCCEEDED
        assert len(client.submitted) == 3

    def test_persistent_transient_failure_becomes_lifecycle_error(self, coordinator, client):
        """Test that exhausting the retries fails the job with LifecycleError."""
        client.failures[LifecycleAction.INGEST_UPSTREAM] = [TransientNetworkError("unavailable", 503)] * 5

        with pytest.raises(LifecycleError) as exc_info:
            coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)

        assert isinstance(exc_info.value.cause, TransientNetworkError)
        assert exc_info.value.action == "INGEST_UPSTREAM"
        assert len(client.submitted) == 3
        assert coordinator.status(MediaModel.IMAGE, LifecycleAction.INGEST_UPSTREAM, "init").state == JobState.FAILED

    def test_rejection_is_not_retried(self, coordinator, client):
        """Test that a remote rejection fails the job after one call."""
        client.failures[LifecycleAction.INGEST_UPSTREAM] = [RemoteRejection("bad suffix", 400)]

        with pytest.raises(RemoteRejection):
            coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)

        assert len(client.submitted) == 1


class TestDeleteIndex:
    """Test protection of the primary index."""

    def test_delete_alias_itself_is_refused(self, coordinator, client):
        """Test that deleting the alias name fails before anything is queued."""
        with pytest.raises(PreconditionError, match="alias"):
            coordinator.delete_index(MediaModel.IMAGE, "image", "image")

        assert client.submitted == []
        assert coordinator.history == []

    def test_delete_aliased_index_is_refused(self, coordinator, client):
        """Test that the index an alias points at cannot be deleted."""
        coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)
        coordinator.promote(MediaModel.IMAGE, "init", "image")

        with pytest.raises(PreconditionError, match="aliased"):
            coordinator.delete_index(MediaModel.IMAGE, "init", "image")

        assert "DELETE_INDEX" not in [action for _, action, _ in client.actions()]

    def test_delete_previous_index_after_repoint(self, coordinator, client):
        """Test that an index is deletable once the alias moved away from it."""
        coordinator.ingest_upstream(MediaModel.IMAGE, "old").result(timeout=5)
        coordinator.promote(MediaModel.IMAGE, "old", "image")
        coordinator.ingest_upstream(MediaModel.IMAGE, "new").result(timeout=5)
        coordinator.promote(MediaModel.IMAGE, "new", "image")

        status = coordinator.delete_index(MediaModel.IMAGE, "old", "image")

        assert status.state == JobState.SUCCEEDED
        assert client.actions()[-1] == ("image", "DELETE_INDEX", "old")
        with pytest.raises(PreconditionError):
            coordinator.promote(MediaModel.IMAGE, "old", "image")


class TestConcurrency:
    """Test per-model lanes."""

    def test_models_run_concurrently(self, coordinator, client):
        """Test that different models are not serialized behind each other."""
        barrier = threading.Barrier(2, timeout=5)
        client.on_submit = lambda request: barrier.wait()

        image = coordinator.ingest_upstream(MediaModel.IMAGE, "init")
        audio = coordinator.ingest_upstream(MediaModel.AUDIO, "init")

        assert image.result(timeout=10).state == JobState.SUCCEEDED
        assert audio.result(timeout=10).state == JobState.SUCCEEDED

    def test_same_model_jobs_never_overlap(self, coordinator, client):
        """Test that at most one job per model talks to the server at a time."""
        in_flight = {"current": 0, "max": 0}
        lock = threading.Lock()

        def track(request):
            with lock:
                in_flight["current"] += 1
                in_flight["max"] = max(in_flight["max"], in_flight["current"])
            time.sleep(0.01)
            with lock:
                in_flight["current"] -= 1

        client.on_submit = track
        jobs = [coordinator.ingest_upstream(MediaModel.IMAGE, f"v{i}") for i in range(5)]
        for job in jobs:
            job.result(timeout=10)

        assert in_flight["max"] == 1
        assert [suffix for _, _, suffix in client.actions()] == ["v0", "v1", "v2", "v3", "v4"]

    def test_concurrent_promotes_keep_alias_consistent(self, coordinator):
        """Test that promotions racing from a synchronized start apply one after the other."""
        rounds = 10
        coordinator.ingest_upstream(MediaModel.IMAGE, "a").result(timeout=5)
        coordinator.ingest_upstream(MediaModel.IMAGE, "b").result(timeout=5)

        for _ in range(rounds):
            barrier = threading.Barrier(2)
            results = []

            def promote(suffix):
                barrier.wait(timeout=5)
                results.append(coordinator.promote(MediaModel.IMAGE, suffix, "image"))

            threads = [threading.Thread(target=promote, args=(suffix,)) for suffix in ("a", "b")]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)

            assert len(results) == 2
            record = coordinator.alias_record(MediaModel.IMAGE, "image")
            assert record.index_suffix == coordinator.history[-1].request.index_suffix

        promoted = [s.request.index_suffix for s in coordinator.history if s.request.action == LifecycleAction.PROMOTE]
        assert len(promoted) == 2 * rounds
        repoints = sum(1 for previous, current in zip(promoted, promoted[1:]) if previous != current)
        assert coordinator.alias_record(MediaModel.IMAGE, "image").version == 1 + repoints


class TestShutdown:
    """Test cancellation of in-flight and queued jobs."""

    def test_shutdown_cancels_polling_and_queued_jobs(self, client, gate):
        """Test that shutdown resolves running and queued jobs to CANCELLED."""
        polled = threading.Event()
        client.task_ids[LifecycleAction.INGEST_UPSTREAM] = "task-1"
        client.snapshots = [running()]
        original_status = client.task_status

        def task_status(task_id):
            polled.set()
            return original_status(task_id)

        client.task_status = task_status
        coordinator = IndexLifecycleCoordinator(
            client=client,
            gate=gate,
            ingestion=INGESTION,
            job_poll_interval=30,
            job_timeout=600,
            token=CancellationToken(),
        )

        running_job = coordinator.ingest_upstream(MediaModel.IMAGE, "init")
        queued_job = coordinator.ingest_upstream(MediaModel.IMAGE, "next")
        assert polled.wait(5)

        coordinator.shutdown(cancel=True)

        with pytest.raises(OperationCancelled):
            running_job.result(timeout=5)
        with pytest.raises(OperationCancelled):
            queued_job.result(timeout=5)
        assert running_job.status.state == JobState.CANCELLED
        assert queued_job.status.state == JobState.CANCELLED
        assert [r.index_suffix for r in client.submitted] == ["init"]

    def test_submit_after_shutdown(self, coordinator):
        """Test that a closed coordinator refuses new jobs."""
        coordinator.shutdown()

        with pytest.raises(RuntimeError, match="shut down"):
            coordinator.ingest_upstream(MediaModel.IMAGE, "init")


class TestStatusTracking:
    """Test job status and history bookkeeping."""

    def test_history_keeps_terminal_statuses(self, coordinator):
        """Test that finished jobs are archived with timestamps."""
        coordinator.ingest_upstream(MediaModel.IMAGE, "init").result(timeout=5)
        coordinator.promote(MediaModel.IMAGE, "init", "image")

        history = coordinator.history

        assert [s.request.action for s in history] == [LifecycleAction.INGEST_UPSTREAM, LifecycleAction.PROMOTE]
        assert all(s.state.is_terminal for s in history)
        assert all(s.finished_at is not None for s in history)

    def test_status_of_unknown_job(self, coordinator):
        """Test that an unknown job has no status."""
        assert coordinator.status(MediaModel.AUDIO, LifecycleAction.PROMOTE, "init") is None

    def test_history_keeps_most_recent_statuses(self, client, gate, clock, token):
        """Test that the history drops the oldest statuses past its limit."""
        coordinator = IndexLifecycleCoordinator(
            client=client,
            gate=gate,
            ingestion=INGESTION,
            token=token,
            retry_loop=RetryLoop(clock),
            history_limit=3,
        )
        for i in range(5):
            coordinator.ingest_upstream(MediaModel.AUDIO, f"v{i}").result(timeout=5)
        coordinator.shutdown()

        assert [s.request.index_suffix for s in coordinator.history] == ["v2", "v3", "v4"]
        assert coordinator.status(MediaModel.AUDIO, LifecycleAction.INGEST_UPSTREAM, "v0") is None
