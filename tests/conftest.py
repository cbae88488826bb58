"""
Shared fixtures: a controllable clock and a fake completion provider.
"""

import pytest

from maya_cache.protocols import PromptContext


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeProvider:
    """Completion provider that records requests and returns a canned reply."""

    model_name = "fake-model"

    def __init__(self, reply: str = "Spring and autumn are the best seasons.") -> None:
        self.reply = reply
        self.fail = False
        self.calls: list[PromptContext] = []

    async def complete(self, context: PromptContext) -> str:
        self.calls.append(context)
        if self.fail:
            raise RuntimeError("LLM API error: upstream unavailable")
        return self.reply

    async def is_available(self) -> bool:
        return not self.fail


@pytest.fixture
def clock():
    """Fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def provider():
    """Fake completion provider."""
    return FakeProvider()
