"""HTTP client for the ingestion server task API.

``POST /task`` schedules a lifecycle action and ``GET /task/<task_id>``
reports the progress of a scheduled task. Failures are classified so that
callers can tell what may be retried:

- transport errors and 5xx answers -> ``TransientNetworkError``
- 4xx answers -> ``RemoteRejection`` (terminal)
"""

from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from stack_orchestrator.constants import TASK_PATH
from stack_orchestrator.exceptions import RemoteRejection, TransientNetworkError
from stack_orchestrator.models import JobState, LifecycleRequest
from stack_orchestrator.settings import Settings


class TaskSnapshot(BaseModel):
    """Progress of a remote task as reported by the ingestion server."""

    state: JobState
    progress: float | None = None
    detail: str = ""


class TaskClient(Protocol):
    """Operations the coordinator needs from the ingestion server."""

    def submit(self, request: LifecycleRequest) -> str | None: ...

    def task_status(self, task_id: str) -> TaskSnapshot: ...


class RetryPolicy(BaseModel):
    """Exponential backoff for transient network failures."""

    max_attempts: int = Field(default=5, ge=1)
    backoff_base: float = Field(default=1.0, ge=0)
    backoff_cap: float = Field(default=30.0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff_base=settings.backoff_base,
            backoff_cap=settings.backoff_cap,
        )

    def retrying(self, sleep=None) -> Retrying:
        """Build a tenacity controller retrying only ``TransientNetworkError``.

        Args:
            sleep: Optional sleep function replacing ``time.sleep`` (tests)
        """
        kwargs: dict[str, Any] = {}
        if sleep is not None:
            kwargs["sleep"] = sleep
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, max=self.backoff_cap),
            retry=retry_if_exception_type(TransientNetworkError),
            reraise=True,
            before_sleep=before_sleep_log(logger, "WARNING"),
            **kwargs,
        )


def parse_task_status(body: dict[str, Any]) -> TaskSnapshot:
    """Translate a ``GET /task/<task_id>`` body into a ``TaskSnapshot``.

    The ingestion server reports ``active``, ``progress`` (percent),
    ``error`` and, once done, ``finish_timestamp``.
    """
    progress = body.get("progress", body.get("percent_completed"))
    progress = float(progress) if progress is not None else None

    if body.get("error"):
        error = body["error"]
        detail = error if isinstance(error, str) else "remote task reported an error"
        return TaskSnapshot(state=JobState.FAILED, progress=progress, detail=detail)

    if body.get("active"):
        return TaskSnapshot(state=JobState.RUNNING, progress=progress, detail="task running")

    if body.get("finish_timestamp") or (progress is not None and progress >= 100):
        return TaskSnapshot(state=JobState.SUCCEEDED, progress=progress, detail="task finished")

    return TaskSnapshot(state=JobState.QUEUED, progress=progress, detail="task scheduled")


class IngestionClient:
    """``httpx`` based client for the ingestion server.

    Args:
        base_url: Base URL of the ingestion server
        timeout: Per-request timeout in seconds
        client: Optional preconfigured client (e.g. with a mock transport)
    """

    def __init__(self, base_url: str, timeout: float = 30.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    def submit(self, request: LifecycleRequest) -> str | None:
        """Schedule ``request`` and return the remote task id, if any."""
        payload = request.to_payload()
        logger.info("Submitting {} for {}", request.action.value, request.model.value)
        logger.debug("POST {}{} {}", self.base_url, TASK_PATH, payload)
        body = self._request("POST", TASK_PATH, json=payload)
        task_id = body.get("task_id") if isinstance(body, dict) else None
        return str(task_id) if task_id is not None else None

    def task_status(self, task_id: str) -> TaskSnapshot:
        """Fetch the progress of a scheduled task."""
        body = self._request("GET", f"{TASK_PATH}/{task_id}")
        if not isinstance(body, dict):
            raise RemoteRejection(f"Unexpected task status body for {task_id}", body=body)
        return parse_task_status(body)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransientNetworkError(f"{method} {url} failed: {type(e).__name__}: {e}") from e

        if response.status_code >= 500:
            raise TransientNetworkError(f"{method} {url} answered {response.status_code}", response.status_code)
        if response.status_code >= 400:
            raise RemoteRejection(
                f"{method} {url} rejected with {response.status_code}: {response.text}",
                response.status_code,
                response.text,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"message": response.text}

    def close(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "IngestionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
