"""Provider-call tracing and the fire-and-forget persistence sink."""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"\S+")


class PersistenceSink(Protocol):
    """Stores named logs (DOM snapshots, raw LLM output)."""

    async def save(self, name: str, data: Any) -> None:
        """Persist `data` under the log called `name`."""


@dataclass(slots=True)
class ProviderTrace:
    trace_id: str
    timestamp_utc: str
    feature: str
    provider: str
    prompt_preview: str
    response_preview: str
    latency_ms: float
    fallback_reason: str | None = None
    error: str | None = None


class TraceStore:
    """In-memory record of provider calls plus a handle on the persistence sink."""

    def __init__(self, *, sink: PersistenceSink | None = None, max_records: int = 500) -> None:
        self._records: dict[str, ProviderTrace] = {}
        self._sink = sink
        self._max_records = max_records
        self._pending: set[asyncio.Task[None]] = set()

    def record(
        self,
        *,
        feature: str,
        provider: str,
        prompt: str,
        response: str,
        latency_ms: float,
        fallback_reason: str | None = None,
        error: str | None = None,
    ) -> ProviderTrace:
        trace = ProviderTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            feature=feature,
            provider=provider,
            prompt_preview=prompt[:320],
            response_preview=response[:320],
            latency_ms=latency_ms,
            fallback_reason=fallback_reason,
            error=error,
        )
        self._records[trace.trace_id] = trace
        while len(self._records) > self._max_records:
            self._records.pop(next(iter(self._records)))
        return trace

    def get(self, trace_id: str) -> ProviderTrace:
        trace = self._records.get(trace_id)
        if trace is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return trace

    def list_recent(self, limit: int = 20) -> list[ProviderTrace]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate call metrics for diagnostics."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_calls": 0,
                "failed_calls": 0,
                "fallback_calls": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        return {
            "total_calls": total,
            "failed_calls": sum(1 for record in records if record.error),
            "fallback_calls": sum(1 for record in records if record.fallback_reason),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
        }

    def persist(self, name: str, data: Any) -> None:
        """Hand `data` to the sink without waiting; failures are logged only."""
        if self._sink is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.warning("No running event loop; dropping %s log", name)
            return
        task = loop.create_task(self._save(self._sink, name, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """Wait for outstanding persistence tasks."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @staticmethod
    async def _save(sink: PersistenceSink, name: str, data: Any) -> None:
        try:
            await sink.save(name, data)
        except Exception as exc:
            LOGGER.warning("Failed to save %s log: %s", name, exc)


class Timer:
    """Context timer used around provider and sandbox calls."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def count_words(text: str) -> int:
    """Whitespace-delimited word count; empty tokens are ignored."""
    return len(_WORD_PATTERN.findall(text or ""))
