import asyncio
import logging

import pytest

from aura_agent.obs.logging import level_from_env, setup_logging
from aura_agent.obs.tracing import TraceStore, count_words


class _FailingSink:
    def __init__(self) -> None:
        self.attempts: list[str] = []

    async def save(self, name: str, data: object) -> None:
        self.attempts.append(name)
        raise OSError("disk full")


def test_persist_failure_is_not_fatal() -> None:
    sink = _FailingSink()
    store = TraceStore(sink=sink)

    async def scenario() -> None:
        store.persist("dom", {"elements": []})
        await store.flush()

    asyncio.run(scenario())

    assert sink.attempts == ["dom"]


def test_trace_store_summary_and_eviction() -> None:
    store = TraceStore(max_records=2)
    for latency in (10.0, 20.0, 30.0):
        store.record(feature="chat", provider="fake", prompt="p", response="r", latency_ms=latency)
    failed = store.record(feature="chat", provider="fake", prompt="p", response="", latency_ms=5.0, error="boom")

    summary = store.summary()

    assert summary["total_calls"] == 2
    assert summary["failed_calls"] == 1
    assert store.get(failed.trace_id).error == "boom"
    with pytest.raises(KeyError):
        store.get("missing")


def test_count_words() -> None:
    assert count_words("  one two\nthree  ") == 3
    assert count_words("") == 0


def test_logging_setup_writes_to_log_dir(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("AURA_LOG_LEVEL", "debug")
    assert level_from_env() == logging.DEBUG

    log_path = setup_logging(log_dir=tmp_path, console=False, force=True)
    logging.getLogger("aura_agent.test").info("hello")

    assert log_path == tmp_path / "aura.log"
    assert "hello" in log_path.read_text(encoding="utf-8")
