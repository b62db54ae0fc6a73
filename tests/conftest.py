"""Shared fixtures."""

import os

import pytest

from stack_orchestrator.cancellation import CancellationToken
from stack_orchestrator.settings import get_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Start every test from default settings and an empty settings cache."""
    for var in list(os.environ):
        if var.upper().startswith("STACK_ORCHESTRATOR_"):
            monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeClock:
    """Monotonic clock advanced explicitly by the test."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ClockedToken(CancellationToken):
    """Cancellation token whose waits advance a fake clock instead of sleeping."""

    def __init__(self, clock: FakeClock):
        super().__init__()
        self.clock = clock
        self.waits: list[float] = []

    def wait(self, seconds: float) -> bool:
        if self.cancelled:
            return True
        self.waits.append(seconds)
        self.clock.advance(seconds)
        return self.cancelled


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token(clock: FakeClock) -> ClockedToken:
    return ClockedToken(clock)
