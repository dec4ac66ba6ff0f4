"""Page-level simplification helpers: text extraction, in-place paragraphs, replace/restore."""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from aura_agent import scripts
from aura_agent.config import SimplificationConfig
from aura_agent.errors import SandboxError
from aura_agent.lifecycle.tracker import RequestTracker
from aura_agent.obs.tracing import count_words
from aura_agent.providers.base import ChatProvider
from aura_agent.sandbox import PageSandbox
from aura_agent.simplify.prompts import build_simplification_messages, validate_options
from aura_agent.types import SimplificationOptions, SimplificationResult, TextData

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ParagraphReport:
    total: int = 0
    simplified: int = 0
    skipped: int = 0
    failed: int = 0
    discarded: bool = False


class ParagraphSimplifier:
    """Simplifies long visible paragraphs one by one and writes them back in place.

    Paragraphs shorter than `min_paragraph_words`, and paragraphs whose
    provider call fails, keep their original text. A run holds a request
    token; once the token goes stale the run stops and writes nothing.
    """

    def __init__(self, tracker: RequestTracker, config: SimplificationConfig | None = None) -> None:
        self.tracker = tracker
        self.config = config or SimplificationConfig()

    async def simplify_in_place(
        self,
        sandbox: PageSandbox,
        options: Mapping[str, Any] | SimplificationOptions | None,
        token: int,
        provider: ChatProvider,
    ) -> ParagraphReport:
        opts = validate_options(options, default_complexity=self.config.default_complexity)
        if not self.tracker.is_current(token):
            return ParagraphReport(discarded=True)
        raw = await sandbox.run(scripts.paragraph_collect_script())
        if not self.tracker.is_current(token):
            return ParagraphReport(discarded=True)
        paragraphs = [item for item in raw or [] if isinstance(item, dict) and item.get("text")]

        report = ParagraphReport(total=len(paragraphs))
        replacements: dict[int, str] = {}
        for item in paragraphs:
            index = int(item["index"])
            text = str(item["text"])
            if count_words(text) < self.config.min_paragraph_words:
                report.skipped += 1
                continue
            try:
                simplified = await provider.complete(build_simplification_messages(text, opts))
            except Exception as exc:
                LOGGER.warning("Paragraph %d kept original text: %s", index, exc)
                simplified = ""
            if not self.tracker.is_current(token):
                LOGGER.debug("Discarding paragraph run %d at paragraph %d", token, index)
                report.discarded = True
                return report
            if not simplified.strip():
                report.failed += 1
                continue
            replacements[index] = simplified.strip()
            report.simplified += 1

        if replacements:
            await sandbox.run(scripts.paragraph_write_script(replacements))
        LOGGER.info(
            "In-place simplification: %d simplified, %d skipped, %d failed",
            report.simplified,
            report.skipped,
            report.failed,
        )
        return report


class PageTextReplacer:
    """Extracts page text and swaps the page body for simplified output."""

    def __init__(self) -> None:
        self._original_html: str | None = None
        self._original_url: str | None = None

    @property
    def is_replaced(self) -> bool:
        return self._original_html is not None

    async def extract(self, sandbox: PageSandbox) -> TextData:
        """Raises `SandboxError` when the page has no readable text."""

        raw = await sandbox.run(scripts.page_text_script())
        if not isinstance(raw, dict) or not str(raw.get("text") or "").strip():
            raise SandboxError("No readable text found on this page.")
        text = str(raw["text"]).strip()
        return TextData(
            text=text,
            title=str(raw.get("title") or ""),
            url=str(raw.get("url") or ""),
            word_count=count_words(text),
        )

    async def replace(self, sandbox: PageSandbox, body_html: str) -> None:
        if not self.is_replaced:
            self._original_html = str(await sandbox.run(scripts.read_body_html_script()) or "")
            self._original_url = await sandbox.current_url()
        await sandbox.run(scripts.write_body_html_script(body_html))

    async def restore(self, sandbox: PageSandbox) -> bool:
        if not self.is_replaced:
            return False
        original_html, original_url = self._original_html, self._original_url
        self._original_html = None
        self._original_url = None
        if original_url and await sandbox.current_url() != original_url:
            await sandbox.navigate(original_url)
        else:
            await sandbox.run(scripts.write_body_html_script(original_html or ""))
        return True


def render_result_html(result: SimplificationResult) -> str:
    """Minimal escaped HTML for a simplified document, one `<p>` per paragraph."""

    parts: list[str] = []
    if result.metadata.title:
        parts.append(f"<h1>{html.escape(result.metadata.title)}</h1>")
    for block in result.simplified_text.split("\n\n"):
        block = block.strip()
        if block:
            parts.append(f"<p>{html.escape(block)}</p>")
    parts.append(
        "<p><small>"
        f"{result.metadata.original_word_count} → {result.metadata.simplified_word_count} words "
        f"({result.word_reduction_percent}% shorter)"
        "</small></p>"
    )
    return "\n".join(parts)
