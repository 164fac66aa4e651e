"""
Pytest configuration and fixtures for resilience layer tests.
"""

import random
from typing import Any, Callable, Iterable

import pytest


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class AsyncRecordingSleep(RecordingSleep):
    """Stand-in for asyncio.sleep that records requested delays."""

    async def __call__(self, seconds: float) -> None:  # type: ignore[override]
        self.calls.append(seconds)


class ScriptedOperation:
    """
    Zero-argument operation that raises or returns items from a script.

    Exceptions in the script are raised; any other value is returned.
    """

    def __init__(self, script: Iterable[Any]):
        self._script = list(script)
        self.calls = 0

    def __call__(self) -> Any:
        item = self._script[min(self.calls, len(self._script) - 1)]
        self.calls += 1
        if isinstance(item, BaseException):
            raise item
        return item


class AsyncScriptedOperation(ScriptedOperation):
    """Coroutine-function version of ScriptedOperation."""

    async def __call__(self) -> Any:  # type: ignore[override]
        return super().__call__()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def async_recording_sleep() -> AsyncRecordingSleep:
    return AsyncRecordingSleep()


@pytest.fixture
def seeded_rng() -> random.Random:
    """Deterministic random source for jitter."""
    return random.Random(42)


@pytest.fixture
def scripted() -> Callable[..., ScriptedOperation]:
    """Factory: scripted(ServerError(), "ok") fails once then returns "ok"."""
    return lambda *items: ScriptedOperation(items)


@pytest.fixture
def async_scripted() -> Callable[..., AsyncScriptedOperation]:
    return lambda *items: AsyncScriptedOperation(items)
