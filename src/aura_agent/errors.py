"""Exception hierarchy shared by the orchestration core."""

from __future__ import annotations


class AuraError(Exception):
    """Base class for all errors raised by the assistant core."""


class ProviderError(AuraError):
    """A chat-completion provider failed to produce a usable answer."""

    def __init__(self, message: str, *, provider: str = "unknown") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """The provider cannot be used at all (missing credentials, not configured)."""


class SimplificationError(AuraError):
    """Raised when a simplification run fails for a reason other than staleness."""

    def __init__(self, message: str, *, chunk_index: int | None = None) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index


class SandboxError(AuraError):
    """A script or navigation inside the page sandbox failed."""
