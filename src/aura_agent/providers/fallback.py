"""Primary-provider calls with a single fallback attempt, scoped per feature."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence

from aura_agent.config import AuraConfig, resolve_api_key
from aura_agent.errors import ProviderUnavailableError
from aura_agent.obs.tracing import Timer, TraceStore
from aura_agent.providers.base import ChatMessage, ChatProvider, Prompt, as_messages, preview
from aura_agent.providers.chat_models import build_provider

LOGGER = logging.getLogger(__name__)

FallbackFn = Callable[[list[ChatMessage], str], Awaitable[str]]
"""Called with `(messages, failure_reason)` after the primary provider fails."""


class ProviderFallbackWrapper:
    """Routes a feature's prompt to its primary provider, falling back once.

    The fallback is either caller-supplied or, by default, the same messages
    re-issued to the feature's secondary provider. There is exactly one
    fallback attempt; if it fails too, its exception propagates.
    """

    def __init__(
        self,
        primary: Mapping[str, ChatProvider],
        secondary: Mapping[str, ChatProvider] | None = None,
        *,
        trace_store: TraceStore | None = None,
    ) -> None:
        self._primary = dict(primary)
        self._secondary = dict(secondary or {})
        self._trace_store = trace_store
        self._last_used: dict[str, str] = {}

    @classmethod
    def from_config(
        cls,
        config: AuraConfig,
        *,
        environ: Mapping[str, str] | None = None,
        trace_store: TraceStore | None = None,
    ) -> "ProviderFallbackWrapper":
        primary: dict[str, ChatProvider] = {}
        secondary: dict[str, ChatProvider] = {}
        for feature, feature_config in config.llm_features.items():
            api_key = resolve_api_key(feature, config, environ)
            primary[feature] = build_provider(feature_config, api_key=api_key, config=config)
            if feature_config.fallback is not None:
                secondary[feature] = build_provider(feature_config.fallback, config=config)
        return cls(primary, secondary, trace_store=trace_store)

    def secondary(self, feature: str) -> ChatProvider | None:
        return self._secondary.get(feature)

    def last_provider(self, feature: str) -> str:
        return self._last_used.get(feature, "none")

    def provider_for(self, feature: str, *, allow_fallback: bool = True) -> "FeatureProvider":
        return FeatureProvider(self, feature, allow_fallback=allow_fallback)

    async def call(
        self,
        prompt: Prompt,
        feature: str,
        *,
        fallback: FallbackFn | None = None,
        allow_fallback: bool = True,
    ) -> str:
        messages = as_messages(prompt)
        primary = self._primary.get(feature)
        if primary is None:
            raise ProviderUnavailableError(f"No provider configured for feature '{feature}'")

        with Timer() as timer:
            try:
                text = await primary.complete(messages)
            except Exception as exc:
                failure = exc
            else:
                failure = None

        if failure is None:
            self._last_used[feature] = primary.name
            self._trace(feature, primary.name, messages, text, timer.elapsed_ms)
            return text

        reason = _failure_reason(failure)
        self._trace(feature, primary.name, messages, "", timer.elapsed_ms, error=str(failure))
        handler = (fallback or self._default_fallback(feature)) if allow_fallback else None
        if handler is None:
            raise failure

        LOGGER.warning("%s via %s failed (%s); trying fallback", feature, primary.name, reason)
        fallback_name = self._secondary[feature].name if feature in self._secondary else "fallback"
        with Timer() as timer:
            text = await handler(messages, reason)
        self._last_used[feature] = fallback_name
        self._trace(feature, fallback_name, messages, text, timer.elapsed_ms, fallback_reason=reason)
        return text

    def _default_fallback(self, feature: str) -> FallbackFn | None:
        secondary = self._secondary.get(feature)
        if secondary is None:
            return None

        async def _reissue(messages: list[ChatMessage], reason: str) -> str:
            del reason
            return await secondary.complete(messages)

        return _reissue

    def _trace(
        self,
        feature: str,
        provider: str,
        messages: Sequence[ChatMessage],
        response: str,
        latency_ms: float,
        *,
        fallback_reason: str | None = None,
        error: str | None = None,
    ) -> None:
        if self._trace_store is None:
            return
        self._trace_store.record(
            feature=feature,
            provider=provider,
            prompt=preview(messages),
            response=response,
            latency_ms=latency_ms,
            fallback_reason=fallback_reason,
            error=error,
        )


class FeatureProvider:
    """`ChatProvider` view of one feature; `name` reports who answered last."""

    def __init__(self, wrapper: ProviderFallbackWrapper, feature: str, *, allow_fallback: bool = True) -> None:
        self._wrapper = wrapper
        self.feature = feature
        self.allow_fallback = allow_fallback

    @property
    def name(self) -> str:
        return self._wrapper.last_provider(self.feature)

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        return await self._wrapper.call(list(messages), self.feature, allow_fallback=self.allow_fallback)


def _failure_reason(exc: BaseException) -> str:
    if isinstance(exc, ProviderUnavailableError):
        return str(exc) or "unavailable"
    return f"exception: {exc}"
