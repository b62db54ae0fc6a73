"""Data models shared by probes, gates and the index lifecycle coordinator."""

from enum import StrEnum
from typing import Any

import arrow
from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_timestamp() -> str:
    """Return the current time as an ISO 8601 UTC timestamp."""
    return arrow.utcnow().isoformat()


class ServiceEndpoint(BaseModel):
    """A named readiness endpoint, configured once at startup."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    expected_status: int = 200
    expected_text: str | None = None  # substring the body must contain, if set

    def __str__(self) -> str:
        return f"{self.name} ({self.url})"


class ProbeResult(BaseModel):
    """Outcome of a single probe attempt."""

    endpoint_name: str
    ready: bool
    status_code: int | None = None
    error: str | None = None
    timestamp: str = Field(default_factory=utc_timestamp)


class GateState(StrEnum):
    """States of a readiness gate. Every state but WAITING is terminal."""

    WAITING = "waiting"
    READY = "ready"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class GateOutcome(BaseModel):
    """Terminal result of one ``ServiceGate.wait_ready`` call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    service_name: str
    state: GateState
    elapsed: float
    attempts: int
    last_probe: ProbeResult | None = None
    error: Exception | None = Field(default=None, exclude=True)

    @property
    def ready(self) -> bool:
        return self.state == GateState.READY

    def raise_for_state(self) -> "GateOutcome":
        """Re-raise the timeout or cancellation behind a non-ready outcome.

        Returns:
            This outcome, when it is ready
        """
        if not self.ready and self.error is not None:
            raise self.error
        return self


class WaitResult(BaseModel):
    """Successful completion of a polled wait."""

    elapsed: float
    attempts: int


class MediaModel(StrEnum):
    """Media types with their own tables and search indices."""

    IMAGE = "image"
    AUDIO = "audio"


class LifecycleAction(StrEnum):
    """Actions understood by the ingestion server task endpoint."""

    LOAD_TEST_DATA = "LOAD_TEST_DATA"
    INGEST_UPSTREAM = "INGEST_UPSTREAM"
    PROMOTE = "PROMOTE"
    DELETE_INDEX = "DELETE_INDEX"


class LifecycleRequest(BaseModel):
    """A single task submitted to the ingestion server."""

    model_config = ConfigDict(frozen=True)

    model: MediaModel
    action: LifecycleAction
    index_suffix: str | None = None
    alias: str | None = None

    @model_validator(mode="after")
    def validate_action_fields(self) -> "LifecycleRequest":
        """Require the index suffix and alias the action operates on."""
        if self.action != LifecycleAction.LOAD_TEST_DATA and not self.index_suffix:
            raise ValueError(f"{self.action.value} requires an index_suffix")
        if self.action == LifecycleAction.PROMOTE and not self.alias:
            raise ValueError("PROMOTE requires an alias")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body of ``POST /task``, omitting unset keys."""
        return self.model_dump(mode="json", exclude_none=True)

    @property
    def key(self) -> tuple[MediaModel, LifecycleAction, str | None]:
        return (self.model, self.action, self.index_suffix)


class JobState(StrEnum):
    """Progress of a lifecycle job."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)


class LifecycleJobStatus(BaseModel):
    """Status of a lifecycle job, owned and updated by the coordinator."""

    request: LifecycleRequest
    state: JobState = JobState.QUEUED
    detail: str = ""
    task_id: str | None = None
    progress: float | None = None
    submitted_at: str = Field(default_factory=utc_timestamp)
    finished_at: str | None = None


class AliasRecord(BaseModel):
    """Which index build the alias of a model points at.

    Records are immutable; a promotion replaces the record with the next
    version.
    """

    model_config = ConfigDict(frozen=True)

    model: MediaModel
    alias: str
    index_suffix: str
    version: int = 1

    def repoint(self, index_suffix: str) -> "AliasRecord":
        """Return the record pointing the alias at ``index_suffix``."""
        if index_suffix == self.index_suffix:
            return self
        return self.model_copy(update={"index_suffix": index_suffix, "version": self.version + 1})
