"""Shared fixtures for resilience unit tests."""

from typing import List

import pytest


class CodedError(Exception):
    """Transport-style failure carrying only an error code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or f"{code} error")
        self.code = code


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def coded_error():
    """Factory for exceptions carrying a transport error code."""
    return CodedError


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Async sleep that records requested durations (seconds) without waiting."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
