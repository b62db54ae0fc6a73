"""Index lifecycle coordination against the ingestion server.

The coordinator sequences the ingest -> promote / delete workflow of a media
model and enforces its ordering invariants:

- a PROMOTE or DELETE_INDEX of ``(model, suffix)`` is only issued after the
  INGEST_UPSTREAM of the same ``(model, suffix)`` has succeeded
- an index currently aliased as primary is never deleted
- nothing is issued before the ingestion server gate has reported ready

Every model owns a lane: a single-worker executor that runs its lifecycle
jobs one at a time, strictly in submission order. Different models run
concurrently. Preconditions that depend on earlier jobs and the alias
records are checked and updated inside the lane, so a check-then-act on the
alias can never interleave with a concurrent promotion of the same model.

Waits inside a lane (remote job polling, retry backoff) observe the
coordinator's cancellation token; a cancelled job resolves to CANCELLED and
the lane moves on to the next job.
"""

import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial

from loguru import logger

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
from stack_orchestrator.models import (
    AliasRecord,
    JobState,
    LifecycleAction,
    LifecycleJobStatus,
    LifecycleRequest,
    MediaModel,
    ServiceEndpoint,
    utc_timestamp,
)
from stack_orchestrator.retry_loop import RetryLoop

from .client import RetryPolicy, TaskClient

JobKey = tuple[MediaModel, LifecycleAction, str | None]
JobWork = Callable[[LifecycleJobStatus], None]


class LifecycleJob:
    """Handle of a lifecycle job queued on a model lane."""

    def __init__(self, status: LifecycleJobStatus, future: Future):
        self._status = status
        self._future = future

    @property
    def request(self) -> LifecycleRequest:
        return self._status.request

    @property
    def status(self) -> LifecycleJobStatus:
        """Live status of the job, updated by the coordinator."""
        return self._status

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> LifecycleJobStatus:
        """Block until the job is terminal.

        Returns:
            The SUCCEEDED status

        Raises:
            The job's failure (``LifecycleError``, ``RemoteRejection``,
            ``PreconditionError``, ``WaitTimeoutError`` or ``OperationCancelled``)
        """
        return self._future.result(timeout)


class IndexLifecycleCoordinator:
    """Sequences lifecycle actions per media model.

    Args:
        client: Ingestion server task client
        gate: Gate that must have reported ``ingestion`` ready
        ingestion: Endpoint of the ingestion server
        retry_policy: Backoff for transient network failures
        job_poll_interval: Spacing of remote job status polls, in seconds
        job_timeout: Maximum wait for a remote job, in seconds
        token: Cancellation token shared by all lanes
        retry_loop: Polling primitive used for remote jobs
        retry_sleep: Sleep used between transient retries (tests)
        history_limit: Number of terminal statuses kept in the history
    """

    def __init__(
        self,
        client: TaskClient,
        gate: ServiceGate,
        ingestion: ServiceEndpoint,
        retry_policy: RetryPolicy | None = None,
        job_poll_interval: float = 5.0,
        job_timeout: float = 3600.0,
        token: CancellationToken | None = None,
        retry_loop: RetryLoop | None = None,
        retry_sleep: Callable[[float], None] | None = None,
        history_limit: int = 1000,
    ):
        self.client = client
        self.gate = gate
        self.ingestion = ingestion
        self.retry_policy = retry_policy or RetryPolicy()
        self.job_poll_interval = job_poll_interval
        self.job_timeout = job_timeout
        self.token = token or CancellationToken()
        self.retry_loop = retry_loop or RetryLoop()
        self._retry_sleep = retry_sleep or self._cancellable_sleep

        self._lanes: dict[MediaModel, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()
        self._closed = False

        # Owned job and alias state; written only from the model's lane
        self._active: dict[JobKey, LifecycleJobStatus] = {}
        self._history: deque[LifecycleJobStatus] = deque(maxlen=history_limit)
        self._succeeded_ingests: set[tuple[MediaModel, str]] = set()
        self._aliases: dict[tuple[MediaModel, str], AliasRecord] = {}

    # Public operations

    def load_test_data(self, model: MediaModel | str) -> LifecycleJobStatus:
        """Load QA data into QA indices. Independent of the ingest chain."""
        request = LifecycleRequest(model=MediaModel(model), action=LifecycleAction.LOAD_TEST_DATA)
        return self.submit(request).result()

    def ingest_upstream(self, model: MediaModel | str, suffix: str) -> LifecycleJob:
        """Queue an upstream ingestion into a new index ``suffix``.

        Returns immediately; the lane submits the task and polls it until the
        remote side reports success or failure.
        """
        request = LifecycleRequest(
            model=MediaModel(model),
            action=LifecycleAction.INGEST_UPSTREAM,
            index_suffix=suffix,
        )
        return self.submit(request)

    def promote(self, model: MediaModel | str, suffix: str, alias: str) -> LifecycleJobStatus:
        """Point ``alias`` at the index built under ``suffix``.

        Raises:
            PreconditionError: No succeeded ingest for ``(model, suffix)``
            RemoteRejection: The ingestion server refused the promotion
            LifecycleError: Transient failures persisted
        """
        request = LifecycleRequest(
            model=MediaModel(model),
            action=LifecycleAction.PROMOTE,
            index_suffix=suffix,
            alias=alias,
        )
        return self.submit(request).result()

    def delete_index(self, model: MediaModel | str, suffix: str, alias: str) -> LifecycleJobStatus:
        """Delete the non-primary index built under ``suffix``.

        Raises:
            PreconditionError: ``suffix`` equals ``alias``, is the index the
                alias points at, or was never successfully ingested
        """
        if suffix == alias:
            raise PreconditionError(f"Refusing to delete '{suffix}': it is the alias '{alias}' itself")
        request = LifecycleRequest(
            model=MediaModel(model),
            action=LifecycleAction.DELETE_INDEX,
            index_suffix=suffix,
        )
        return self.submit(request, alias=alias).result()

    def submit(self, request: LifecycleRequest, alias: str | None = None) -> LifecycleJob:
        """Queue ``request`` on its model lane.

        Args:
            request: Request to issue
            alias: For DELETE_INDEX, the alias that must not point at the index

        Raises:
            PreconditionError: The ingestion server gate has not reported ready
            RuntimeError: The coordinator has been shut down
        """
        if not self.gate.is_ready(self.ingestion.name):
            raise PreconditionError(f"{self.ingestion.name} has not been reported ready; wait for it first")

        if request.action == LifecycleAction.INGEST_UPSTREAM:
            work: JobWork = self._run_ingest
        elif request.action == LifecycleAction.PROMOTE:
            work = self._run_promote
        elif request.action == LifecycleAction.DELETE_INDEX:
            work = partial(self._run_delete, alias=alias)
        else:
            work = self._call
        return self._enqueue(request, work)

    def adopt_ingest(self, model: MediaModel | str, suffix: str) -> LifecycleJobStatus:
        """Record an index built by an earlier run as successfully ingested.

        Used when the index is known to exist on the search backend (e.g. a
        promotion issued from a new process). Serialized like any other job
        and archived in the history.
        """
        request = LifecycleRequest(
            model=MediaModel(model),
            action=LifecycleAction.INGEST_UPSTREAM,
            index_suffix=suffix,
        )
        return self._enqueue(request, self._record_existing_ingest).result()

    def _enqueue(self, request: LifecycleRequest, work: JobWork) -> LifecycleJob:
        status = LifecycleJobStatus(request=request)
        with self._lock:
            if self._closed:
                raise RuntimeError("Coordinator has been shut down")
            self._active[request.key] = status
            future = self._lane(request.model).submit(self._run, status, work)

        logger.debug("Queued {} for {} (suffix={})", request.action.value, request.model.value, request.index_suffix)
        return LifecycleJob(status, future)

    def status(self, model: MediaModel | str, action: LifecycleAction, suffix: str | None = None) -> LifecycleJobStatus | None:
        """Return the active status for a job, or its latest archived status."""
        key = (MediaModel(model), action, suffix)
        with self._lock:
            if key in self._active:
                return self._active[key]
            return next((s for s in reversed(self._history) if s.request.key == key), None)

    @property
    def history(self) -> list[LifecycleJobStatus]:
        """Most recent terminal job statuses, oldest first."""
        with self._lock:
            return list(self._history)

    def alias_record(self, model: MediaModel | str, alias: str) -> AliasRecord | None:
        """Return the index the given alias currently points at, if known."""
        with self._lock:
            return self._aliases.get((MediaModel(model), alias))

    def shutdown(self, cancel: bool = True) -> None:
        """Stop accepting jobs and wait for the lanes to drain.

        Args:
            cancel: If True, cancel in-flight waits; queued jobs then resolve
                to CANCELLED instead of running
        """
        with self._lock:
            self._closed = True
            lanes = list(self._lanes.values())
        if cancel:
            self.token.cancel("coordinator shutdown")
        for lane in lanes:
            lane.shutdown(wait=True)
        logger.debug("Coordinator shut down ({} lanes)", len(lanes))

    def __enter__(self) -> "IndexLifecycleCoordinator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(cancel=True)

    # Lane execution

    def _lane(self, model: MediaModel) -> ThreadPoolExecutor:
        lane = self._lanes.get(model)
        if lane is None:
            lane = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"lifecycle-{model.value}")
            self._lanes[model] = lane
        return lane

    def _run(self, status: LifecycleJobStatus, work: JobWork) -> LifecycleJobStatus:
        request = status.request
        action = request.action.value
        try:
            if self.token.cancelled:
                raise OperationCancelled(f"{action} {request.model.value}")

            self._update(status, state=JobState.RUNNING, detail="running")
            work(status)

        except OperationCancelled:
            self._finish(status, JobState.CANCELLED, "cancelled")
            raise
        except TransientNetworkError as e:
            self._finish(status, JobState.FAILED, str(e))
            raise LifecycleError(action, e) from e
        except (PreconditionError, RemoteRejection, LifecycleError, WaitTimeoutError) as e:
            self._finish(status, JobState.FAILED, str(e))
            raise
        except Exception as e:
            logger.exception("Unexpected error while running {}", action)
            self._finish(status, JobState.FAILED, f"{type(e).__name__}: {e}")
            raise

        self._finish(status, JobState.SUCCEEDED, status.detail or "done")
        return status

    def _run_ingest(self, status: LifecycleJobStatus) -> None:
        request = status.request
        # Only the latest ingest of an index counts
        with self._lock:
            self._succeeded_ingests.discard((request.model, request.index_suffix))
        task_id = self._call(status)
        if task_id is not None:
            self._await_task(status, task_id)
        with self._lock:
            self._succeeded_ingests.add((request.model, request.index_suffix))

    def _record_existing_ingest(self, status: LifecycleJobStatus) -> None:
        request = status.request
        self._update(status, detail="index already present")
        with self._lock:
            self._succeeded_ingests.add((request.model, request.index_suffix))

    def _run_promote(self, status: LifecycleJobStatus) -> None:
        request = status.request
        self._require_ingested(request)
        self._call(status)

        key = (request.model, request.alias)
        with self._lock:
            current = self._aliases.get(key)
            if current is None:
                record = AliasRecord(model=request.model, alias=request.alias, index_suffix=request.index_suffix)
            else:
                record = current.repoint(request.index_suffix)
            self._aliases[key] = record
        logger.info(
            "Alias '{}' of {} now points at '{}' (version {})",
            record.alias,
            record.model.value,
            record.index_suffix,
            record.version,
        )

    def _run_delete(self, status: LifecycleJobStatus, alias: str | None) -> None:
        request = status.request
        suffix = request.index_suffix
        with self._lock:
            aliased = [r for (model, _), r in self._aliases.items() if model == request.model and r.index_suffix == suffix]
        if aliased:
            names = ", ".join(sorted(r.alias for r in aliased))
            raise PreconditionError(f"Refusing to delete '{suffix}': aliased as primary by {names}")
        if alias is not None and suffix == alias:
            raise PreconditionError(f"Refusing to delete '{suffix}': it is the alias '{alias}' itself")
        self._require_ingested(request)

        self._call(status)
        with self._lock:
            self._succeeded_ingests.discard((request.model, suffix))

    def _require_ingested(self, request: LifecycleRequest) -> None:
        with self._lock:
            ingested = (request.model, request.index_suffix) in self._succeeded_ingests
        if not ingested:
            raise PreconditionError(
                f"{request.action.value} of {request.model.value} '{request.index_suffix}' "
                f"requires a succeeded INGEST_UPSTREAM of the same index"
            )

    def _call(self, status: LifecycleJobStatus) -> str | None:
        """Submit the request, retrying transient network failures."""
        retrying = self.retry_policy.retrying(sleep=self._retry_sleep)
        task_id = retrying(self.client.submit, status.request)
        self._update(status, task_id=task_id, detail="accepted")
        return task_id

    def _await_task(self, status: LifecycleJobStatus, task_id: str) -> None:
        """Poll the remote task until it succeeds or fails."""
        request = status.request
        failure: str | None = None

        def check() -> bool:
            nonlocal failure
            retrying = self.retry_policy.retrying(sleep=self._retry_sleep)
            snapshot = retrying(self.client.task_status, task_id)
            self._update(status, progress=snapshot.progress, detail=snapshot.detail)
            if snapshot.state == JobState.FAILED:
                failure = snapshot.detail
                return True
            return snapshot.state == JobState.SUCCEEDED

        self.retry_loop.await_condition(
            check,
            timeout=self.job_timeout,
            interval=self.job_poll_interval,
            token=self.token,
            description=f"{request.action.value} {request.model.value} '{request.index_suffix}'",
        )
        if failure is not None:
            raise LifecycleError(request.action.value, RemoteRejection(failure))

    def _cancellable_sleep(self, seconds: float) -> None:
        if self.token.wait(seconds):
            raise OperationCancelled("retry backoff")

    # Status bookkeeping

    def _update(self, status: LifecycleJobStatus, **changes) -> None:
        with self._lock:
            for field, value in changes.items():
                setattr(status, field, value)

    def _finish(self, status: LifecycleJobStatus, state: JobState, detail: str) -> None:
        request = status.request
        with self._lock:
            status.state = state
            status.detail = detail
            status.finished_at = utc_timestamp()
            if self._active.get(request.key) is status:
                del self._active[request.key]
            self._history.append(status)

        log = logger.info if state == JobState.SUCCEEDED else logger.warning
        log(
            "{} of {} (suffix={}) {}: {}",
            request.action.value,
            request.model.value,
            request.index_suffix,
            state.value,
            detail,
        )
