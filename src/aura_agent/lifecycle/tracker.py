"""Monotonic request tokens for discarding stale asynchronous work."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)


class RequestTracker:
    """Issues strictly increasing tokens for one logical workflow.

    A newer run wins by taking a new token; older runs call `is_current` on
    entry and after every await, and stop producing side effects once it
    returns False. Tokens are never reused or decremented.

    All access happens on the event-loop thread; there is no locking.
    """

    def __init__(self, name: str = "workflow") -> None:
        self.name = name
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue_token(self) -> int:
        self._latest += 1
        LOGGER.debug("%s: issued request token %d", self.name, self._latest)
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def invalidate(self) -> None:
        """Make every outstanding token stale without starting new work."""
        self._latest += 1
        LOGGER.debug("%s: invalidated tokens up to %d", self.name, self._latest - 1)
