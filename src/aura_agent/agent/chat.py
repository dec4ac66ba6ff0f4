"""Text chat pipeline: classify, then plan and execute or answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aura_agent import scripts
from aura_agent.agent.executor import CommandExecutor
from aura_agent.agent.router import IntentRouter, ParsedCommands, PlainAnswer
from aura_agent.obs.tracing import TraceStore
from aura_agent.sandbox import PageSandbox
from aura_agent.types import ExecutionReport, Intent, MessageSink

LOGGER = logging.getLogger(__name__)

UNKNOWN_REPLY = "Sorry, I couldn't understand your request."
ERROR_REPLY = "Sorry, I encountered an error. Please try again later."


@dataclass(slots=True)
class ChatOutcome:
    intent: Intent
    report: ExecutionReport | None = None
    answer: str | None = None


class ChatHandler:
    """Routes one user message through the router, executor or answerer."""

    def __init__(
        self,
        *,
        router: IntentRouter,
        executor: CommandExecutor,
        sink: MessageSink,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.router = router
        self.executor = executor
        self.sink = sink
        self.trace_store = trace_store

    async def send_message(
        self, text: str, sandbox: PageSandbox, *, echo: bool = True
    ) -> ChatOutcome | None:
        """Handle one message; every failure ends in a chat reply, never an exception."""

        message = text.strip()
        if not message:
            return None
        if echo:
            self.sink(message, "user")

        try:
            intent = await self.router.classify(message)
            LOGGER.info("Intent %s for %r", intent, message)
            if intent == "action":
                return await self._handle_action(message, sandbox)
            if intent == "question":
                return await self._handle_question(message, sandbox)
            self.sink(UNKNOWN_REPLY, "assistant")
            return ChatOutcome(intent="unknown")
        except Exception:
            LOGGER.exception("Chat message failed")
            self.sink(ERROR_REPLY, "assistant")
            return None

    async def _handle_action(self, message: str, sandbox: PageSandbox) -> ChatOutcome:
        screen_context = await sandbox.run(scripts.screen_context_script())
        if screen_context:
            self._persist("dom", screen_context)

        plan = await self.router.plan_actions(message, screen_context)
        if isinstance(plan, ParsedCommands):
            self._persist("llm", plan.raw)
            report = await self.executor.execute(plan.commands, sandbox, self.sink)
            return ChatOutcome(intent="action", report=report)
        if isinstance(plan, PlainAnswer):
            self._persist("llm", plan.text)
            self.sink(plan.text, "assistant")
            return ChatOutcome(intent="action", answer=plan.text)

        LOGGER.info("Planner output was not a command: %s", plan.reason)
        self._persist("llm", plan.raw)
        self.sink(plan.raw.strip(), "assistant")
        return ChatOutcome(intent="action", answer=plan.raw.strip())

    async def _handle_question(self, message: str, sandbox: PageSandbox) -> ChatOutcome:
        self.sink("Let me look that up for you...", "assistant")
        page_text = await sandbox.run(scripts.visible_text_script())
        answer = await self.router.answer_question(message, str(page_text or ""))
        self.sink(answer, "assistant")
        self._persist("llm", answer)
        return ChatOutcome(intent="question", answer=answer)

    def _persist(self, name: str, data: object) -> None:
        if self.trace_store is not None:
            self.trace_store.persist(name, data)
