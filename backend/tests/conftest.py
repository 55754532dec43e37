import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


class StreamFailure:
    """Stream that yields ``fragments`` and then raises."""

    def __init__(self, fragments: list[str], error: Exception | None = None):
        self.fragments = fragments
        self.error = error or RuntimeError("stream broke")


class FakeStream:
    def __init__(self, fragments: list[str], error: Exception | None = None):
        self.fragments = fragments
        self.error = error

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for fragment in self.fragments:
            await asyncio.sleep(0)
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=fragment))])
        if self.error is not None:
            raise self.error


class FakeCompletions:
    """
    Scripted stand-in for ``client.chat.completions``. Each ``create`` call pops the next
    step: a list of fragments, an exception to raise, or a StreamFailure. The last step
    repeats once the script runs out.
    """

    def __init__(self, script: list):
        self.script = list(script)
        self.calls: list[dict] = []
        self.gate: asyncio.Event | None = None

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.gate is not None:
            await self.gate.wait()
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        if isinstance(step, StreamFailure):
            return FakeStream(step.fragments, step.error)
        return FakeStream(list(step))


@pytest.fixture
def make_completion_client():
    def _make(*script):
        completions = FakeCompletions(list(script) or [["Tell me more."]])
        return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions

    return _make


@pytest.fixture
def fast_settings():
    from core.config import InterviewSettings

    return InterviewSettings(base_retry_delay_sec=0.0, max_retry_delay_sec=0.0)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stream_failure():
    return StreamFailure
