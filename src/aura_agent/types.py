"""Shared domain models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

Complexity = Literal["simple", "moderate", "advanced"]
Intent = Literal["question", "action", "unknown"]

MessageSink = Callable[[str, str], None]
"""Receives `(text, sender)` where sender is `"assistant"` or `"user"`."""


@dataclass(slots=True)
class TextData:
    """Text extracted from a page or document, ready for simplification."""

    text: str
    title: str = ""
    url: str = ""
    word_count: int = 0


@dataclass(slots=True, frozen=True)
class TextChunk:
    """A sentence-aligned slice of a larger document."""

    index: int
    content: str
    is_first: bool
    is_last: bool


@dataclass(slots=True)
class SimplificationOptions:
    """Validated simplification options."""

    complexity: Complexity = "moderate"
    preserve_formatting: bool = False
    title: str = ""
    url: str = ""
    word_count: int = 0


@dataclass(slots=True, frozen=True)
class SimplificationMetadata:
    original_word_count: int
    simplified_word_count: int
    title: str
    url: str
    chunk_count: int


@dataclass(slots=True, frozen=True)
class SimplificationResult:
    """Outcome of one completed, non-discarded simplification run."""

    original_text: str
    simplified_text: str
    complexity_level: Complexity
    word_reduction_percent: float
    metadata: SimplificationMetadata
    provider_used: str


@dataclass(slots=True, frozen=True)
class SimplificationProgress:
    """Incremental state emitted after each chunk in chunked mode."""

    chunk_index: int
    total_chunks: int
    simplified_text: str
    simplified_word_count: int
    word_reduction_percent: float


@dataclass(slots=True, frozen=True)
class FormField:
    """A fillable field discovered on the live page."""

    selector: str
    label: str
    tag: str
    input_type: str
    required: bool = False
    options: tuple[str, ...] | None = None


@dataclass(slots=True)
class FormSessionState:
    """Snapshot of the active form session."""

    index: int
    total: int
    current_label: str | None
    fields: tuple[FormField, ...]


@dataclass(slots=True)
class VoiceSessionState:
    is_continuous_mode: bool = False
    is_recording: bool = False


@dataclass(slots=True)
class StepTrace:
    """Trace record for one executed command."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float


@dataclass(slots=True)
class StepOutcome:
    """Result of one command in an execution chain (1-indexed)."""

    index: int
    action: str
    status: Literal["ok", "soft_failure", "error"]
    message: str
    stop_chain: bool = False


@dataclass(slots=True)
class ExecutionReport:
    steps: list[StepOutcome] = field(default_factory=list)
    traces: list[StepTrace] = field(default_factory=list)
    halted: bool = False
    suggestions_generated: bool = False
