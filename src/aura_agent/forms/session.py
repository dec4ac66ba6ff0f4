"""Guided, one-field-at-a-time form filling."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from aura_agent import scripts
from aura_agent.config import PhraseConfig
from aura_agent.errors import SandboxError
from aura_agent.sandbox import PageSandbox
from aura_agent.types import FormField, FormSessionState, MessageSink

LOGGER = logging.getLogger(__name__)

_FORMAT_HINTS = {
    "email": "📧 **Format:** Email address (e.g., user@example.com)",
    "tel": "📞 **Format:** Phone number",
    "date": "📅 **Format:** Date (YYYY-MM-DD)",
}


@dataclass(slots=True)
class FormSession:
    fields: tuple[FormField, ...]
    sandbox: PageSandbox
    sink: MessageSink
    current_index: int = 0
    answers: dict[str, str] = field(default_factory=dict)

    @property
    def current(self) -> FormField | None:
        if self.current_index < len(self.fields):
            return self.fields[self.current_index]
        return None


class FormFiller:
    """Owns the single form session.

    States run Idle → Awaiting(i) → Awaiting(i + 1) | Completed | Cancelled.
    A `start` while a session is active returns the existing snapshot; the
    session is dropped on completion or cancellation.
    """

    def __init__(self, phrases: PhraseConfig | None = None, *, highlight_ms: int = 1500) -> None:
        self.phrases = phrases or PhraseConfig()
        self.highlight_ms = highlight_ms
        self._session: FormSession | None = None

    @property
    def is_active(self) -> bool:
        return self._session is not None

    def snapshot(self) -> FormSessionState | None:
        session = self._session
        if session is None:
            return None
        current = session.current
        return FormSessionState(
            index=session.current_index,
            total=len(session.fields),
            current_label=current.label if current else None,
            fields=session.fields,
        )

    async def start(self, sandbox: PageSandbox, sink: MessageSink) -> FormSessionState | None:
        """Detect fields and ask for the first one.

        Returns None when the page has no fillable fields.

        Raises:
            SandboxError: the detection script failed.
        """

        if self._session is not None:
            LOGGER.debug("Form session already active; returning current state")
            return self.snapshot()

        raw = await sandbox.run(scripts.form_detection_script())
        fields = _parse_fields(raw)
        if not fields:
            sink("❌ No fillable form fields detected on this page.", "assistant")
            return None

        self._session = FormSession(fields=fields, sandbox=sandbox, sink=sink)
        LOGGER.info("Form session started with %d field(s)", len(fields))
        sink(
            "🎯 **Form Detection Complete!**\n\n"
            f"Found {len(fields)} form fields. I'll guide you through filling them one by one.\n\n"
            "📋 **Process:**\n"
            "• I'll ask for each field value individually\n"
            '• Say "NA" to skip any field you don\'t have information for\n'
            '• Say "cancel" at any time to stop form filling\n\n'
            "Let's start:",
            "assistant",
        )
        self._ask_current()
        return self.snapshot()

    async def submit_answer(self, text: str) -> bool:
        """Apply `text` to the current field; False when no session consumed it."""

        session = self._session
        if session is None:
            return False

        answer = text.strip()
        lowered = answer.lower()
        if lowered in self.phrases.form_cancel_words:
            session.sink("🚫 Form filling cancelled.", "assistant")
            self._session = None
            LOGGER.info("Form session cancelled at field %d", session.current_index + 1)
            return True

        current = session.current
        if current is None:
            self._finish()
            return True

        if lowered in self.phrases.form_skip_words:
            session.sink(f'⏭️ Skipping "{current.label}"', "assistant")
            self._advance()
            return True

        await self._write(session, current, answer)
        self._advance()
        return True

    def cancel(self) -> bool:
        if self._session is None:
            return False
        self._session = None
        return True

    async def _write(self, session: FormSession, target: FormField, value: str) -> None:
        try:
            result = await session.sandbox.run(
                scripts.fill_field_script(target.selector, value, self.highlight_ms)
            )
        except SandboxError as exc:
            LOGGER.info("Writing %s failed: %s", target.selector, exc)
            session.sink(f'❌ Error filling field "{target.label}": {exc}', "assistant")
            return

        if isinstance(result, dict) and result.get("ok"):
            session.answers[target.selector] = value
            session.sink(f'✓ Filled "{target.label}" with: {value}', "assistant")
            return

        reason = result.get("reason") if isinstance(result, dict) else None
        detail = {
            "not_found": f"field not found with selector {target.selector}",
            "no_option": f'no matching option for "{value}"',
        }.get(str(reason), str(reason or "unknown error"))
        LOGGER.info("Writing %s failed: %s", target.selector, detail)
        session.sink(f'❌ Error filling field "{target.label}": {detail}', "assistant")

    def _advance(self) -> None:
        session = self._session
        if session is None:
            return
        session.current_index += 1
        if session.current_index >= len(session.fields):
            self._finish()
        else:
            self._ask_current()

    def _finish(self) -> None:
        session = self._session
        if session is None:
            return
        self._session = None
        LOGGER.info("Form session completed (%d answer(s))", len(session.answers))
        session.sink("✅ **Form filling completed!** All fields have been processed.", "assistant")

    def _ask_current(self) -> None:
        session = self._session
        if session is None or session.current is None:
            return
        target = session.current
        lines = [
            f"📝 **Field {session.current_index + 1} of {len(session.fields)}**",
            f'Please provide a value for "{target.label}"',
        ]
        if target.options:
            lines.append(f"📋 **Available options:** {', '.join(target.options)}")
        elif target.input_type in _FORMAT_HINTS:
            lines.append(_FORMAT_HINTS[target.input_type])
        if target.required:
            lines.append("⚠️ **This field is required**")
        lines.append("💡 **Tip:** Say \"NA\" to skip this field if you don't have the information.")
        session.sink("\n\n".join(lines), "assistant")


def _parse_fields(raw: Any) -> tuple[FormField, ...]:
    if not isinstance(raw, list):
        return ()
    fields: list[FormField] = []
    for item in raw:
        if not isinstance(item, Mapping) or not item.get("selector"):
            continue
        options = item.get("options")
        fields.append(
            FormField(
                selector=str(item["selector"]),
                label=str(item.get("label") or item["selector"]),
                tag=str(item.get("tag") or "input"),
                input_type=str(item.get("input_type") or item.get("tag") or "text"),
                required=bool(item.get("required")),
                options=tuple(str(option) for option in options) if isinstance(options, list) else None,
            )
        )
    return tuple(fields)
