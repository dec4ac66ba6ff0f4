"""Intent classification and command planning."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Union

from aura_agent.agent.commands import AnyCommand, parse_command
from aura_agent.errors import ProviderUnavailableError
from aura_agent.providers.base import ChatMessage
from aura_agent.providers.fallback import ProviderFallbackWrapper
from aura_agent.types import Intent

LOGGER = logging.getLogger(__name__)

_CLASSIFY_SYSTEM_PROMPT = """
You classify messages sent to a browser assistant.

Reply with exactly one lower-case word:
- question: the user wants information from the page or about a topic
- action: the user wants the browser to navigate, click, fill in, select or agree to something
- unknown: anything else

Do not explain your answer.
""".strip()

_PLANNER_PROMPT = """
You are a browser assistant. Convert the user's command into page commands.

Output either a single JSON object or a JSON array of objects, one object per step, in execution order.

Supported actions:
- {{"action": "search_and_navigate", "topic": "<topic, link text, site name or URL>"}}
- {{"action": "agree_and_start_form"}} ticks agreement/terms checkboxes, then starts guided form filling
- {{"action": "start_form_filling"}} starts guided form filling
- {{"action": "click", "selector": "<css selector>"}}
- {{"action": "fill", "selector": "<css selector>", "value": "<text>"}}
- {{"action": "select", "selector": "<css selector>", "value": "<visible option text>"}}

If unsure, emit {{"action": "search_and_navigate", "topic": "<the user's command verbatim>"}}.
Only output the JSON, no extra text.
{context}
User command: "{utterance}"
""".strip()

_RAW_JSON_INSTRUCTION = (
    "Return RAW JSON only: a single command object or an array of command objects. "
    "No markdown, no code fences, no commentary."
)

_QUESTION_PROMPT = """
You are an AI assistant. The user is viewing a website and has asked: "{question}"

Here is the visible text from the page:
{page_text}

Please answer the user's question using only the information from the page. If the answer is not present, say so.
""".strip()

_INTENTS: tuple[Intent, ...] = ("question", "action", "unknown")
_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(?P<body>.*?)\n?```$", re.DOTALL)
_MAX_CONTEXT_CHARS = 6000
_MAX_PAGE_TEXT_CHARS = 12000


@dataclass(slots=True)
class ParsedCommands:
    commands: list[AnyCommand]
    raw: str = ""


@dataclass(slots=True)
class PlainAnswer:
    """Provider output that was not JSON; shown to the user as a chat reply."""

    text: str


@dataclass(slots=True)
class ParseError:
    """Valid JSON that is not a command object or a non-empty array."""

    raw: str
    reason: str
    data: Any = field(default=None, repr=False)


PlanResult = Union[ParsedCommands, PlainAnswer, ParseError]


def parse_commands(raw: str) -> PlanResult:
    """Turn planner output into commands. Never raises."""

    text = _strip_code_fences(raw.strip())
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return PlainAnswer(raw.strip())

    if isinstance(data, dict):
        return ParsedCommands([parse_command(data)], raw=raw)
    if isinstance(data, list):
        if not data:
            return ParseError(raw, "empty command list", data)
        return ParsedCommands([parse_command(item) for item in data], raw=raw)
    return ParseError(raw, f"expected an object or array, got {type(data).__name__}", data)


def _strip_code_fences(text: str) -> str:
    match = _FENCE_PATTERN.match(text)
    return match.group("body").strip() if match else text


class IntentRouter:
    """Classifies utterances and obtains command plans from providers."""

    def __init__(
        self,
        providers: ProviderFallbackWrapper,
        *,
        classification_feature: str = "classification",
        navigator_feature: str = "navigator",
        chat_feature: str = "chat",
    ) -> None:
        self.providers = providers
        self.classification_feature = classification_feature
        self.navigator_feature = navigator_feature
        self.chat_feature = chat_feature

    async def classify(self, utterance: str) -> Intent:
        messages = [
            {"role": "system", "content": _CLASSIFY_SYSTEM_PROMPT},
            {"role": "user", "content": utterance},
        ]
        try:
            raw = await self.providers.call(messages, self.classification_feature)
        except Exception as exc:
            LOGGER.warning("Intent classification failed: %s", exc)
            return "unknown"
        return normalize_intent(raw)

    async def plan_actions(self, utterance: str, screen_context: Any = None) -> PlanResult:
        prompt = _PLANNER_PROMPT.format(
            context=_format_context(screen_context), utterance=utterance.replace('"', "'")
        )
        raw = await self.providers.call(
            prompt, self.navigator_feature, fallback=self._raw_json_retry
        )
        result = parse_commands(raw)
        LOGGER.info("Planner produced %s", type(result).__name__)
        return result

    async def answer_question(self, question: str, page_text: str) -> str:
        prompt = _QUESTION_PROMPT.format(
            question=question, page_text=(page_text or "")[:_MAX_PAGE_TEXT_CHARS]
        )
        return await self.providers.call(prompt, self.chat_feature)

    async def _raw_json_retry(self, messages: list[ChatMessage], reason: str) -> str:
        secondary = self.providers.secondary(self.navigator_feature)
        if secondary is None:
            raise ProviderUnavailableError(f"No fallback for {self.navigator_feature} ({reason})")
        LOGGER.info("Re-asking %s for raw JSON after %s", secondary.name, reason)
        return await secondary.complete([*messages, {"role": "user", "content": _RAW_JSON_INSTRUCTION}])


def normalize_intent(raw: str) -> Intent:
    """Exact match first, then containment, else `unknown`."""

    text = (raw or "").strip().lower()
    if text in _INTENTS:
        return text  # type: ignore[return-value]
    if "question" in text:
        return "question"
    if "action" in text:
        return "action"
    return "unknown"


def _format_context(screen_context: Any) -> str:
    if not screen_context:
        return ""
    serialized = json.dumps(screen_context, ensure_ascii=False)[:_MAX_CONTEXT_CHARS]
    return f"\nVisible interactive elements on the page (JSON):\n{serialized}\n"
