"""Single-shot and chunked text simplification with stale-result discard."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from aura_agent.config import AuraConfig
from aura_agent.errors import SimplificationError
from aura_agent.lifecycle.tracker import RequestTracker
from aura_agent.obs.tracing import count_words
from aura_agent.providers.base import ChatMessage, ChatProvider
from aura_agent.simplify.chunker import SentenceChunker
from aura_agent.simplify.prompts import (
    build_chunk_messages,
    build_simplification_messages,
    estimate_processing_time,
    validate_options,
)
from aura_agent.types import (
    SimplificationMetadata,
    SimplificationOptions,
    SimplificationProgress,
    SimplificationResult,
    TextData,
)

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[SimplificationProgress], None]
StatusCallback = Callable[[str], None]


def word_reduction(original_words: int, simplified_words: int) -> float:
    """Percentage of words removed, to one decimal place; 0.0 for an empty original."""

    if original_words <= 0:
        return 0.0
    return round((original_words - simplified_words) / original_words * 100.0, 1)


class SimplificationPipeline:
    """Runs one simplification under a request token.

    The token is checked on entry and again after every provider call; a
    stale run returns None without calling any callback. Texts longer than
    the chunking threshold are split into sentence-aligned chunks that are
    processed strictly one after another, with a progress callback after
    each chunk. Provider failures surface as `SimplificationError`; there is
    no retry here.
    """

    def __init__(
        self,
        tracker: RequestTracker,
        *,
        chunker: SentenceChunker | None = None,
        config: AuraConfig | None = None,
    ) -> None:
        self.tracker = tracker
        self.config = config or AuraConfig()
        self.chunker = chunker or SentenceChunker(self.config.chunking)

    async def simplify(
        self,
        text_data: TextData,
        options: Mapping[str, Any] | SimplificationOptions | None,
        token: int,
        provider: ChatProvider,
        *,
        on_progress: ProgressCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> SimplificationResult | None:
        opts = validate_options(options, default_complexity=self.config.simplification.default_complexity)
        if not self.tracker.is_current(token):
            LOGGER.debug("Discarding simplification %d before start", token)
            return None

        original_words = text_data.word_count if text_data.word_count > 0 else count_words(text_data.text)
        opts = replace(
            opts,
            title=opts.title or text_data.title,
            url=opts.url or text_data.url,
            word_count=opts.word_count or original_words,
        )

        estimate_ms = estimate_processing_time(original_words, opts.complexity)
        _notify(on_status, f"Simplifying text... (estimated {math.ceil(estimate_ms / 1000)}s)")

        if len(text_data.text) > self.config.chunking.chunking_threshold:
            return await self._simplify_chunked(
                text_data, opts, token, provider, original_words, on_progress, on_status
            )

        messages = build_simplification_messages(text_data.text, opts)
        simplified = await self._complete(provider, messages, token)
        if simplified is None:
            return None

        return _build_result(text_data, opts, simplified, original_words, 1, provider.name)

    async def _simplify_chunked(
        self,
        text_data: TextData,
        opts: SimplificationOptions,
        token: int,
        provider: ChatProvider,
        original_words: int,
        on_progress: ProgressCallback | None,
        on_status: StatusCallback | None,
    ) -> SimplificationResult | None:
        chunks = self.chunker.split(text_data.text, self.config.chunking.max_chunk_size)
        total = len(chunks)
        LOGGER.info("Simplifying %d chunk(s) under token %d", total, token)
        _notify(on_status, f"Processing {total} text chunks...")

        combined = ""
        for chunk in chunks:
            if not self.tracker.is_current(token):
                LOGGER.debug("Discarding simplification %d at chunk %d", token, chunk.index + 1)
                return None
            _notify(on_status, f"Processing chunk {chunk.index + 1} of {total}...")

            messages = build_chunk_messages(chunk.content, chunk.index, total, opts)
            simplified = await self._complete(provider, messages, token, chunk_index=chunk.index)
            if simplified is None:
                return None

            combined = f"{combined}\n\n{simplified}" if combined else simplified
            if on_progress is not None:
                simplified_words = count_words(combined)
                on_progress(
                    SimplificationProgress(
                        chunk_index=chunk.index,
                        total_chunks=total,
                        simplified_text=combined,
                        simplified_word_count=simplified_words,
                        word_reduction_percent=word_reduction(original_words, simplified_words),
                    )
                )

        return _build_result(text_data, opts, combined, original_words, total, provider.name)

    async def _complete(
        self,
        provider: ChatProvider,
        messages: list[ChatMessage],
        token: int,
        *,
        chunk_index: int | None = None,
    ) -> str | None:
        """Call the provider; None means the token went stale meanwhile."""

        label = "Simplification" if chunk_index is None else f"Chunk {chunk_index + 1}"
        try:
            text = await provider.complete(messages)
        except Exception as exc:
            if not self.tracker.is_current(token):
                LOGGER.debug("Ignoring failure of stale simplification %d: %s", token, exc)
                return None
            raise SimplificationError(f"{label} failed: {exc}", chunk_index=chunk_index) from exc

        if not self.tracker.is_current(token):
            LOGGER.debug("Discarding result of stale simplification %d", token)
            return None
        if not text or not text.strip():
            raise SimplificationError(f"{label} failed: empty response", chunk_index=chunk_index)
        return text.strip()


def _build_result(
    text_data: TextData,
    opts: SimplificationOptions,
    simplified: str,
    original_words: int,
    chunk_count: int,
    provider_name: str,
) -> SimplificationResult:
    simplified_words = count_words(simplified)
    return SimplificationResult(
        original_text=text_data.text,
        simplified_text=simplified,
        complexity_level=opts.complexity,
        word_reduction_percent=word_reduction(original_words, simplified_words),
        metadata=SimplificationMetadata(
            original_word_count=original_words,
            simplified_word_count=simplified_words,
            title=text_data.title,
            url=text_data.url,
            chunk_count=chunk_count,
        ),
        provider_used=provider_name,
    )


def _notify(callback: StatusCallback | None, message: str) -> None:
    if callback is not None:
        callback(message)
