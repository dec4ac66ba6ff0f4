"""Follow-up "next steps" suggestions after navigation."""

from __future__ import annotations

import logging

from aura_agent import scripts
from aura_agent.config import ExecutorConfig
from aura_agent.errors import AuraError
from aura_agent.providers.base import ChatProvider
from aura_agent.sandbox import PageSandbox
from aura_agent.types import MessageSink

LOGGER = logging.getLogger(__name__)

NEXT_STEPS_HEADER = "💡 **Next Steps:**"

_PROMPT_TEMPLATE = """You are a helpful web navigation assistant. A user just completed an action on a page. Based ONLY on the following visible elements, suggest exactly 2 concise, high-value next steps they could take. Avoid generic statements. Each step must reference real text.

PAGE: {title}
URL: {url}
ELEMENTS:
{elements}

Format strictly as:
{header}
1. <action>
2. <action>"""


class NextStepSuggester:
    """Summarises the visible page and asks a provider for two next steps."""

    def __init__(self, provider: ChatProvider, config: ExecutorConfig | None = None) -> None:
        self.provider = provider
        self.config = config or ExecutorConfig()

    async def generate(self, sandbox: PageSandbox, sink: MessageSink) -> str | None:
        """Emit suggestions to `sink`; failures are reported there, never raised."""

        try:
            snapshot = await sandbox.run(
                scripts.next_step_snapshot_script(self.config.suggestion_element_limit)
            )
        except AuraError as exc:
            LOGGER.info("Page snapshot for suggestions failed: %s", exc)
            sink("⚠️ Could not analyze page for suggestions.", "assistant")
            return None

        elements = snapshot.get("elements") if isinstance(snapshot, dict) else None
        if not elements:
            sink("⚠️ Could not analyze page for suggestions.", "assistant")
            return None

        listing = "\n".join(
            f"{i}. <{element.get('tag', '?')}> {element.get('text', '')}"
            for i, element in enumerate(elements, start=1)
        )
        prompt = _PROMPT_TEMPLATE.format(
            title=snapshot.get("title", ""),
            url=snapshot.get("url", ""),
            elements=listing,
            header=NEXT_STEPS_HEADER,
        )

        try:
            response = await self.provider.complete([{"role": "user", "content": prompt}])
        except Exception as exc:
            LOGGER.warning("Next-step suggestion failed: %s", exc)
            sink(f"⚠️ Failed generating next steps: {exc}", "assistant")
            return None

        formatted = response if "Next Steps" in response else f"{NEXT_STEPS_HEADER}\n{response}"
        sink(formatted, "assistant")
        return formatted
