"""Agreement-checkbox acknowledgment and agreement-phrase detection."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from aura_agent import scripts
from aura_agent.errors import SandboxError
from aura_agent.sandbox import PageSandbox

LOGGER = logging.getLogger(__name__)


async def perform_acknowledgment(
    sandbox: PageSandbox,
    keywords: Sequence[str],
    *,
    highlight_ms: int,
) -> list[str]:
    """Check every visible agreement checkbox and return the labels acknowledged.

    Raises:
        SandboxError: the page script failed or returned an unexpected shape.
    """

    result = await sandbox.run(scripts.acknowledgment_script(keywords, highlight_ms))
    if not isinstance(result, dict) or not isinstance(result.get("acknowledged"), list):
        raise SandboxError(f"Unexpected acknowledgment result: {result!r}")
    labels = [str(label) for label in result["acknowledged"]]
    LOGGER.info("Acknowledged %d checkbox(es)", len(labels))
    return labels


def is_agreement_phrase(text: str, phrases: Sequence[str]) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(phrase in lowered for phrase in phrases)
