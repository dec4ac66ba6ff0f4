import asyncio
import re

import pytest

from aura_agent.errors import SimplificationError
from aura_agent.lifecycle.tracker import RequestTracker
from aura_agent.simplify.pipeline import SimplificationPipeline, word_reduction
from aura_agent.types import TextData

from helpers import FakeProvider


def _long_text(min_chars: int) -> str:
    sentence = "This sentence about public services is written in a rather long and complicated manner."
    sentences: list[str] = []
    while len(" ".join(sentences)) <= min_chars:
        sentences.append(sentence)
    return " ".join(sentences)


def test_short_text_uses_single_call() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = FakeProvider(["Plain words here."], name="openai:gpt-3.5-turbo")
    text = _long_text(450)[:500]
    statuses: list[str] = []

    async def scenario():
        token = tracker.issue_token()
        return await pipeline.simplify(
            TextData(text=text, title="Guide"), {"complexity": "simple"}, token, provider, on_status=statuses.append
        )

    result = asyncio.run(scenario())

    assert result is not None
    assert len(provider.calls) == 1
    assert result.metadata.chunk_count == 1
    assert result.simplified_text == "Plain words here."
    assert result.complexity_level == "simple"
    assert result.provider_used == "openai:gpt-3.5-turbo"
    assert "Page Title: Guide" in provider.calls[0][1]["content"]
    assert statuses and statuses[0].startswith("Simplifying text...")


def test_long_text_is_chunked_sequentially_with_progress() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = FakeProvider(lambda messages: "Short part.")
    text = _long_text(9000)
    progress = []

    async def scenario():
        token = tracker.issue_token()
        return await pipeline.simplify(TextData(text=text), None, token, provider, on_progress=progress.append)

    result = asyncio.run(scenario())

    assert result is not None
    assert len(provider.calls) >= 3
    parts = [int(re.search(r"part (\d+) of", call[1]["content"]).group(1)) for call in provider.calls]
    assert parts == list(range(1, len(provider.calls) + 1))
    assert result.metadata.chunk_count == len(provider.calls)
    assert result.simplified_text == "\n\n".join(["Short part."] * len(provider.calls))
    assert [item.chunk_index for item in progress] == list(range(len(provider.calls)))
    assert progress[-1].total_chunks == len(provider.calls)


class _GateAfterFirstCall:
    name = "fake"

    def __init__(self) -> None:
        self.calls: list[list[dict[str, str]]] = []
        self.gate = asyncio.Event()

    async def complete(self, messages) -> str:
        self.calls.append(list(messages))
        if len(self.calls) > 1:
            await self.gate.wait()
        return "Short part."


def test_superseded_run_is_discarded_while_newer_run_completes() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    gate = asyncio.Event()
    old_provider = FakeProvider(["Too late."], gate=gate)
    new_provider = FakeProvider(["Fresh result."])
    old_statuses: list[str] = []
    old_progress = []
    new_statuses: list[str] = []

    async def scenario():
        first = tracker.issue_token()
        task = asyncio.create_task(
            pipeline.simplify(
                TextData(text="Old request text."),
                None,
                first,
                old_provider,
                on_progress=old_progress.append,
                on_status=old_statuses.append,
            )
        )
        await asyncio.sleep(0)
        seen_before_supersede = list(old_statuses)
        second = tracker.issue_token()
        newer = await pipeline.simplify(
            TextData(text="New request text."), None, second, new_provider, on_status=new_statuses.append
        )
        gate.set()
        return await task, newer, seen_before_supersede

    stale, newer, seen_before_supersede = asyncio.run(scenario())

    assert stale is None
    assert newer is not None and newer.simplified_text == "Fresh result."
    assert old_statuses == seen_before_supersede
    assert old_progress == []
    assert new_statuses


def test_chunked_run_stops_when_superseded_between_chunks() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = _GateAfterFirstCall()
    progress = []
    statuses: list[str] = []

    async def scenario():
        token = tracker.issue_token()
        task = asyncio.create_task(
            pipeline.simplify(
                TextData(text=_long_text(9000)),
                None,
                token,
                provider,
                on_progress=progress.append,
                on_status=statuses.append,
            )
        )
        while len(provider.calls) < 2:
            await asyncio.sleep(0)
        statuses_before = len(statuses)
        tracker.issue_token()
        provider.gate.set()
        return await task, statuses_before

    result, statuses_before = asyncio.run(scenario())

    assert result is None
    assert [item.chunk_index for item in progress] == [0]
    assert len(statuses) == statuses_before
    assert len(provider.calls) == 2


def test_stale_token_never_calls_provider() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = FakeProvider()

    async def scenario():
        token = tracker.issue_token()
        tracker.invalidate()
        return await pipeline.simplify(TextData(text="Anything."), None, token, provider)

    assert asyncio.run(scenario()) is None
    assert provider.calls == []


def test_word_reduction_uses_original_count() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = FakeProvider([" ".join(["short"] * 60)])
    text = " ".join(["lengthy"] * 100)

    async def scenario():
        token = tracker.issue_token()
        return await pipeline.simplify(TextData(text=text, word_count=100), None, token, provider)

    result = asyncio.run(scenario())

    assert result is not None
    assert result.word_reduction_percent == 40.0
    assert result.metadata.original_word_count == 100
    assert result.metadata.simplified_word_count == 60


def test_provider_failure_raises_simplification_error() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = FakeProvider(error=RuntimeError("connection refused"))

    async def scenario():
        token = tracker.issue_token()
        return await pipeline.simplify(TextData(text="Some text."), None, token, provider)

    with pytest.raises(SimplificationError, match="connection refused"):
        asyncio.run(scenario())


def test_empty_response_is_an_error() -> None:
    tracker = RequestTracker("simplification")
    pipeline = SimplificationPipeline(tracker)
    provider = FakeProvider(["   "])

    async def scenario():
        token = tracker.issue_token()
        return await pipeline.simplify(TextData(text="Some text."), None, token, provider)

    with pytest.raises(SimplificationError):
        asyncio.run(scenario())


def test_word_reduction_handles_empty_original() -> None:
    assert word_reduction(0, 5) == 0.0
    assert word_reduction(3, 2) == 33.3
