"""PDF text extraction for document simplification."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Protocol, runtime_checkable

from aura_agent.errors import AuraError
from aura_agent.obs.tracing import count_words
from aura_agent.types import TextData

LOGGER = logging.getLogger(__name__)


class PdfExtractionError(AuraError):
    """The PDF could not be read or contains no extractable text."""


@runtime_checkable
class PdfExtractor(Protocol):
    async def extract_text(self, data: bytes) -> TextData:
        """Return the document text with its word count."""


class PypdfExtractor:
    """Extracts text page by page with pypdf (install the `pdf` extra).

    Parsing is CPU-bound, so it runs in a worker thread.
    """

    def __init__(self, *, title: str = "PDF document") -> None:
        self.title = title

    async def extract_text(self, data: bytes) -> TextData:
        text = await asyncio.to_thread(self._read, data)
        if not text.strip():
            raise PdfExtractionError("No extractable text found in the PDF.")
        return TextData(text=text, title=self.title, url="", word_count=count_words(text))

    @staticmethod
    def _read(data: bytes) -> str:
        from pypdf import PdfReader

        try:
            reader = PdfReader(io.BytesIO(data))
        except Exception as exc:
            raise PdfExtractionError(f"Unable to open PDF: {exc}") from exc

        pages: list[str] = []
        for number, page in enumerate(reader.pages, start=1):
            try:
                pages.append((page.extract_text() or "").strip())
            except Exception as exc:
                LOGGER.warning("Skipping unreadable PDF page %d: %s", number, exc)
        return "\n\n".join(page for page in pages if page)
