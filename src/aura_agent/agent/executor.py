"""Sequential execution of page-manipulation commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from aura_agent import scripts
from aura_agent.agent.acknowledgment import perform_acknowledgment
from aura_agent.agent.commands import (
    AgreeAndStartForm,
    AnyCommand,
    Click,
    Fill,
    InvalidCommand,
    MalformedCommand,
    SearchAndNavigate,
    Select,
    StartFormFilling,
    UnsupportedCommand,
    command_payload,
    parse_command,
)
from aura_agent.agent.search import Candidate, best_match, resolve_navigation_url
from aura_agent.agent.suggestions import NextStepSuggester
from aura_agent.config import AuraConfig
from aura_agent.errors import SandboxError
from aura_agent.forms.session import FormFiller
from aura_agent.obs.tracing import Timer
from aura_agent.sandbox import PageSandbox
from aura_agent.types import ExecutionReport, MessageSink, StepOutcome, StepTrace

LOGGER = logging.getLogger(__name__)

_COMMAND_TYPES = (
    SearchAndNavigate,
    AgreeAndStartForm,
    StartFormFilling,
    Click,
    Fill,
    Select,
    UnsupportedCommand,
    InvalidCommand,
    MalformedCommand,
)

_Handler = Callable[[Any, int, PageSandbox, MessageSink], Awaitable[StepOutcome]]


class CommandExecutor:
    """Runs commands strictly in order with per-step failure isolation.

    Soft failures (element not found, no matching option, unsupported action,
    sandbox script errors) are reported and the chain continues. Malformed
    commands and unexpected exceptions halt the remaining sequence.
    """

    def __init__(
        self,
        *,
        form_filler: FormFiller,
        suggester: NextStepSuggester | None = None,
        config: AuraConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.form_filler = form_filler
        self.suggester = suggester
        self.config = config or AuraConfig()
        self._sleep = sleep
        self._observer: Callable[[StepTrace], None] | None = None
        self._handlers: dict[type, _Handler] = {
            SearchAndNavigate: self._search_and_navigate,
            AgreeAndStartForm: self._agree_and_start_form,
            StartFormFilling: self._start_form_filling,
            Click: self._click,
            Fill: self._fill,
            Select: self._select,
            UnsupportedCommand: self._unsupported,
            InvalidCommand: self._invalid,
            MalformedCommand: self._malformed,
        }

    def set_observer(self, observer: Callable[[StepTrace], None] | None) -> None:
        """Set an optional callback invoked after each executed step."""
        self._observer = observer

    async def execute(
        self,
        commands: Sequence[Any],
        sandbox: PageSandbox,
        sink: MessageSink,
    ) -> ExecutionReport:
        parsed = [
            command if isinstance(command, _COMMAND_TYPES) else parse_command(command)
            for command in commands
        ]
        total = len(parsed)
        report = ExecutionReport()
        sink(f"📋 Executing {total} command(s)...", "assistant")

        for index, command in enumerate(parsed, start=1):
            with Timer() as timer:
                outcome = await self._execute_single(command, index, sandbox, sink)
            trace = StepTrace(
                name=outcome.action,
                input_payload=command_payload(command),
                output_preview=outcome.message[:320],
                latency_ms=timer.elapsed_ms,
            )
            report.steps.append(outcome)
            report.traces.append(trace)
            if self._observer is not None:
                self._observer(trace)
            if outcome.stop_chain:
                report.halted = True
                sink("⛔ Stopping remaining commands due to failure.", "assistant")
                break

        sink(f"🎉 Finished {len(report.steps)} of {total} command(s).", "assistant")

        navigated = any(step.action == "search_and_navigate" for step in report.steps)
        if navigated and self.suggester is not None:
            await self._sleep(self.config.executor.settle_delay_ms / 1000.0)
            await self.suggester.generate(sandbox, sink)
            report.suggestions_generated = True
        return report

    async def _execute_single(
        self, command: AnyCommand, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        handler = self._handlers[type(command)]
        try:
            return await handler(command, index, sandbox, sink)
        except SandboxError as exc:
            LOGGER.info("Step %d (%s) failed in the page: %s", index, command.action, exc)
            return _report(sink, index, command.action, "soft_failure", f"❌ {command.action} failed: {exc}")
        except Exception as exc:
            LOGGER.exception("Step %d (%s) raised", index, command.action)
            return _report(
                sink,
                index,
                command.action,
                "error",
                f"❌ Error executing {command.action}: {exc}",
                stop_chain=True,
            )

    async def _search_and_navigate(
        self, command: SearchAndNavigate, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        topic = command.topic.strip()
        url = resolve_navigation_url(topic)
        if url is not None:
            sink(f"{index}. 🌐 Navigating to: {url}", "assistant")
            await sandbox.navigate(url)
            return StepOutcome(index, command.action, "ok", f"{index}. 🌐 Navigating to: {url}")

        sink(f"{index}. 🔍 Searching for: {topic}", "assistant")
        raw = await sandbox.run(scripts.candidate_scan_script())
        candidates = [Candidate.from_payload(item) for item in raw or [] if isinstance(item, dict)]
        match = best_match(candidates, topic, self.config.search)
        if match is None:
            return _report(sink, index, command.action, "soft_failure", f'⚠️ No match found for "{topic}"')

        result = await sandbox.run(
            scripts.highlight_and_click_script(
                match.candidate.index, self.config.executor.click_delay_ms
            )
        )
        if not (isinstance(result, dict) and result.get("ok")):
            return _report(sink, index, command.action, "soft_failure", f'⚠️ Match for "{topic}" disappeared before click')
        LOGGER.info("Clicking %r (score %d) for topic %r", match.candidate.text, match.score, topic)
        target = match.candidate.href or match.candidate.text
        return _report(sink, index, command.action, "ok", f"✅ Navigated via click: {target}")

    async def _agree_and_start_form(
        self, command: AgreeAndStartForm, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        sink(f"{index}. ✅ Checking agreement boxes...", "assistant")
        labels = await perform_acknowledgment(
            sandbox, self.config.phrases.agreement_keywords, highlight_ms=self.config.executor.highlight_ms
        )
        if labels:
            sink(f"{index}. ✅ Acknowledged: {', '.join(labels)}", "assistant")
        else:
            sink(f"{index}. ❌ No agreement checkboxes found.", "assistant")
        return await self._start_form_filling(command, index, sandbox, sink)

    async def _start_form_filling(
        self, command: AgreeAndStartForm | StartFormFilling, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        sink(f"{index}. 📝 Starting form session...", "assistant")
        state = await self.form_filler.start(sandbox, sink)
        if state is None:
            return _report(sink, index, command.action, "soft_failure", "⚠️ No form fields detected.")
        return StepOutcome(
            index,
            command.action,
            "ok",
            f"{index}. 📝 Form session at field {state.index + 1} of {state.total}",
        )

    async def _click(self, command: Click, index: int, sandbox: PageSandbox, sink: MessageSink) -> StepOutcome:
        result = await sandbox.run(scripts.click_script(command.selector, self.config.executor.highlight_ms))
        if _ok(result):
            return _report(sink, index, command.action, "ok", f"✅ Clicked: {command.selector}")
        return _report(sink, index, command.action, "soft_failure", f"⚠️ Could not find: {command.selector}")

    async def _fill(self, command: Fill, index: int, sandbox: PageSandbox, sink: MessageSink) -> StepOutcome:
        result = await sandbox.run(
            scripts.fill_script(command.selector, command.value, self.config.executor.highlight_ms)
        )
        if _ok(result):
            return _report(sink, index, command.action, "ok", f'✅ Filled {command.selector} with "{command.value}"')
        return _report(sink, index, command.action, "soft_failure", f"⚠️ Could not find: {command.selector}")

    async def _select(self, command: Select, index: int, sandbox: PageSandbox, sink: MessageSink) -> StepOutcome:
        result = await sandbox.run(
            scripts.select_script(command.selector, command.value, self.config.executor.highlight_ms)
        )
        if _ok(result):
            return _report(sink, index, command.action, "ok", f'✅ Selected "{command.value}" in {command.selector}')
        reason = result.get("reason") if isinstance(result, dict) else None
        if reason == "not_select":
            text = f"⚠️ {command.selector} is not a select element"
        elif reason == "no_option":
            text = f'⚠️ No option "{command.value}" in {command.selector}'
        else:
            text = f"⚠️ Could not find: {command.selector}"
        return _report(sink, index, command.action, "soft_failure", text)

    async def _unsupported(
        self, command: UnsupportedCommand, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        del sandbox
        return _report(sink, index, command.action, "soft_failure", f"❓ Unsupported action: {command.action}")

    async def _invalid(
        self, command: InvalidCommand, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        del sandbox
        return _report(sink, index, command.action, "soft_failure", f"❌ {command.action} is invalid: {command.reason}")

    async def _malformed(
        self, command: MalformedCommand, index: int, sandbox: PageSandbox, sink: MessageSink
    ) -> StepOutcome:
        del sandbox
        return _report(sink, index, command.action, "error", f"❌ {command.reason}", stop_chain=True)


def _ok(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("ok"))


def _report(
    sink: MessageSink,
    index: int,
    action: str,
    status: str,
    text: str,
    *,
    stop_chain: bool = False,
) -> StepOutcome:
    message = f"{index}. {text}"
    sink(message, "assistant")
    return StepOutcome(index=index, action=action, status=status, message=message, stop_chain=stop_chain)
