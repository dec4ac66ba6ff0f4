"""Sentence-aligned chunking for long documents."""

from __future__ import annotations

import re

from aura_agent.config import ChunkingConfig
from aura_agent.types import TextChunk

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


class SentenceChunker:
    """Greedily packs whole sentences into chunks of bounded character length.

    A sentence ends at `.`, `!` or `?` followed by whitespace or the end of the
    text; the terminator stays with its sentence. Sentences are packed in
    order, joined by a single space, until the next one would push the chunk
    past `max_chunk_size`. A single sentence longer than the limit becomes a
    chunk of its own rather than being cut mid-sentence.

    The packing depends only on the input, so identical text always yields
    identical chunks.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def split(self, text: str, max_chunk_size: int | None = None) -> list[TextChunk]:
        limit = max_chunk_size or self.config.max_chunk_size
        if limit <= 0:
            raise ValueError("max_chunk_size must be positive")

        if len(text) <= limit:
            return _as_chunks([text])

        pieces: list[str] = []
        current = ""
        for sentence in self.sentences(text):
            if not current:
                current = sentence
            elif len(current) + 1 + len(sentence) <= limit:
                current = f"{current} {sentence}"
            else:
                pieces.append(current)
                current = sentence
        if current:
            pieces.append(current)

        if not pieces:
            return _as_chunks([text])
        return _as_chunks(pieces)

    @staticmethod
    def sentences(text: str) -> list[str]:
        return [part.strip() for part in _SENTENCE_SPLIT.split(text) if part.strip()]


def _as_chunks(pieces: list[str]) -> list[TextChunk]:
    last = len(pieces) - 1
    return [
        TextChunk(index=i, content=piece, is_first=i == 0, is_last=i == last)
        for i, piece in enumerate(pieces)
    ]
