"""Audio capture and transcription contracts."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class MicrophoneStream(Protocol):
    """An open capture stream.

    `level_db` is polled while recording; `stop` ends capture and returns
    the recorded samples, one float sequence per channel.
    """

    sample_rate: int

    def level_db(self) -> float:
        ...

    async def stop(self) -> list[Sequence[float]]:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class Microphone(Protocol):
    async def open(self) -> MicrophoneStream:
        """Acquire the device; raises when permission or hardware is missing."""


@runtime_checkable
class Transcriber(Protocol):
    async def transcribe(self, wav_bytes: bytes, sample_rate: int) -> str:
        """Return recognised text, or an empty string when nothing was understood."""
