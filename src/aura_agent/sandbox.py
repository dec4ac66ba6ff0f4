"""Page-scripting sandbox contract and a Playwright-backed implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from aura_agent.errors import SandboxError

if TYPE_CHECKING:
    from playwright.async_api import Page

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class PageSandbox(Protocol):
    """Runs scripts in an isolated page context and drives navigation."""

    async def run(self, script: str) -> Any:
        """Evaluate `script` and return its JSON-compatible value."""

    async def navigate(self, url: str) -> None:
        ...

    async def current_url(self) -> str:
        ...


class PlaywrightPageSandbox:
    """`PageSandbox` over a `playwright.async_api.Page`.

    Install with the `browser` extra. Script and navigation failures surface
    as `SandboxError`.
    """

    def __init__(self, page: "Page", *, navigation_timeout_ms: float = 30_000) -> None:
        self.page = page
        self.navigation_timeout_ms = navigation_timeout_ms

    async def run(self, script: str) -> Any:
        from playwright.async_api import Error as PlaywrightError

        try:
            return await self.page.evaluate(script)
        except PlaywrightError as exc:
            raise SandboxError(f"Page script failed: {exc}") from exc

    async def navigate(self, url: str) -> None:
        from playwright.async_api import Error as PlaywrightError

        LOGGER.info("Navigating to %s", url)
        try:
            await self.page.goto(url, timeout=self.navigation_timeout_ms)
        except PlaywrightError as exc:
            raise SandboxError(f"Navigation to {url} failed: {exc}") from exc

    async def current_url(self) -> str:
        return self.page.url
