"""LangChain-backed chat providers for the remote and local models."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, convert_to_messages

from aura_agent.config import AuraConfig, LLMFeatureConfig
from aura_agent.errors import ProviderError, ProviderUnavailableError
from aura_agent.providers.base import ChatMessage

LOGGER = logging.getLogger(__name__)


class LangChainChatProvider:
    """Adapts a LangChain chat model to the `ChatProvider` contract."""

    def __init__(self, llm: BaseChatModel | Any, *, name: str) -> None:
        self.llm = llm
        self.name = name

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        try:
            response = await self.llm.ainvoke(to_langchain_messages(messages))
        except Exception as exc:
            raise ProviderError(f"{self.name} request failed: {exc}", provider=self.name) from exc

        content = _extract_content(response)
        if not content.strip():
            raise ProviderError(f"{self.name} returned an empty response.", provider=self.name)
        return content


class UnavailableProvider:
    """Stand-in for a provider that cannot be built (e.g. missing API key)."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        raise ProviderUnavailableError(self.reason, provider=self.name)


def to_langchain_messages(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
    return convert_to_messages([dict(message) for message in messages])


def create_chat_model(
    feature: LLMFeatureConfig, *, api_key: str = "", base_url: str | None = None
) -> BaseChatModel:
    """Instantiate the LangChain model for one feature configuration."""

    if feature.provider == "openai":
        if not api_key:
            raise ProviderUnavailableError("missing_api_key", provider=f"openai:{feature.model}")
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=feature.model, api_key=api_key, temperature=feature.temperature)

    from langchain_ollama import ChatOllama

    kwargs: dict[str, Any] = {"model": feature.model, "temperature": feature.temperature}
    if base_url:
        kwargs["base_url"] = base_url
    return ChatOllama(**kwargs)


def build_provider(
    feature: LLMFeatureConfig, *, api_key: str = "", config: AuraConfig | None = None
) -> LangChainChatProvider | UnavailableProvider:
    name = f"{feature.provider}:{feature.model}"
    base_url = (config or AuraConfig()).ollama_base_url if feature.provider == "ollama" else None
    try:
        llm = create_chat_model(feature, api_key=api_key, base_url=base_url)
    except ProviderUnavailableError as exc:
        LOGGER.info("Provider %s unavailable: %s", name, exc)
        return UnavailableProvider(name, str(exc))
    return LangChainChatProvider(llm, name=name)


def _extract_content(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
