import asyncio
from collections.abc import Callable, Sequence
from typing import Any

from aura_agent.voice.wav import SILENCE_DB


class FakeProvider:
    def __init__(
        self,
        responses: Sequence[str] | Callable[[list[dict[str, str]]], str] = ("ok",),
        *,
        name: str = "fake",
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.responses = responses
        self.error = error
        self.gate = gate
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages: Sequence[dict[str, str]]) -> str:
        self.calls.append([dict(message) for message in messages])
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if callable(self.responses):
            return self.responses(self.calls[-1])
        index = min(len(self.calls), len(self.responses)) - 1
        return self.responses[index]


class FakeSandbox:
    """Answers scripts by exact text; `default` handles everything else."""

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        *,
        default: Any = None,
        url: str = "https://example.test/",
    ) -> None:
        self.responses = dict(responses or {})
        self.default = default
        self.url = url
        self.scripts: list[str] = []
        self.navigations: list[str] = []

    async def run(self, script: str) -> Any:
        self.scripts.append(script)
        result = self.responses.get(script, self.default)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(script)
        return result

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self.url = url

    async def current_url(self) -> str:
        return self.url


class Messages:
    def __init__(self) -> None:
        self.items: list[tuple[str, str]] = []

    def __call__(self, text: str, sender: str) -> None:
        self.items.append((text, sender))

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.items]

    def contains(self, fragment: str) -> bool:
        return any(fragment in text for text in self.texts)


class FakeStream:
    def __init__(
        self,
        channels: list[list[float]] | None = None,
        *,
        levels: Sequence[float] = (-20.0,),
        sample_rate: int = 16000,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels if channels is not None else [[0.1, -0.1, 0.2, -0.2]]
        self.levels = list(levels)
        self.stopped = False
        self.closed = False

    def level_db(self) -> float:
        if self.levels:
            return self.levels.pop(0) if len(self.levels) > 1 else self.levels[0]
        return SILENCE_DB

    async def stop(self) -> list[list[float]]:
        self.stopped = True
        return self.channels

    async def close(self) -> None:
        self.closed = True


class FakeMicrophone:
    def __init__(self, streams: Callable[[], FakeStream] | None = None, *, error: Exception | None = None) -> None:
        self.factory = streams or FakeStream
        self.error = error
        self.opened: list[FakeStream] = []

    async def open(self) -> FakeStream:
        if self.error is not None:
            raise self.error
        stream = self.factory()
        self.opened.append(stream)
        return stream


class FakeTranscriber:
    def __init__(self, transcripts: Sequence[str] = ("",), *, error: Exception | None = None) -> None:
        self.transcripts = list(transcripts)
        self.error = error
        self.received: list[bytes] = []

    async def transcribe(self, wav_bytes: bytes, sample_rate: int) -> str:
        self.received.append(wav_bytes)
        if self.error is not None:
            raise self.error
        return self.transcripts.pop(0) if self.transcripts else ""


class FakeChat:
    def __init__(self) -> None:
        self.messages: list[str] = []

    async def send_message(self, text: str, sandbox: Any, *, echo: bool = True) -> None:
        self.messages.append(text)
