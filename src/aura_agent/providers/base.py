"""Chat-completion provider contract."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

ChatMessage = dict[str, str]
Prompt = str | Sequence[ChatMessage]


@runtime_checkable
class ChatProvider(Protocol):
    """A text-generation backend reachable through one `complete` call.

    Implementations raise `ProviderError` (or any exception) when the backend
    is unreachable or answers with an error.
    """

    name: str

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        """Return the assistant reply for `messages`."""


def as_messages(prompt: Prompt) -> list[ChatMessage]:
    """Promote a bare prompt string to a single user message."""
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return [dict(message) for message in prompt]


def preview(messages: Sequence[ChatMessage]) -> str:
    return "\n".join(f"{m.get('role', 'user')}: {m.get('content', '')}" for m in messages)
