"""Configuration models for the assistant core."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field


class ChunkingConfig(BaseModel):
    """Configures sentence-aligned chunking of long documents."""

    max_chunk_size: int = Field(default=3000, ge=200)
    chunking_threshold: int = Field(default=8000, ge=1)


class SimplificationConfig(BaseModel):
    """Configures simplification defaults and in-place paragraph mode."""

    default_complexity: Literal["simple", "moderate", "advanced"] = "moderate"
    min_paragraph_words: int = Field(default=50, ge=0)
    remote_feature: str = "simplification"
    local_feature: str = "simplification_local"


class RecordingConfig(BaseModel):
    """Configures silence detection, recording limits and restart delays."""

    silence_db_threshold: float = Field(default=-50.0, le=0.0)
    silence_duration_ms: int = Field(default=2000, ge=0)
    max_recording_ms: int = Field(default=15000, ge=1)
    level_poll_interval_ms: int = Field(default=50, ge=1)
    retry_delay_ms: int = Field(default=2000, ge=0)
    form_restart_delay_ms: int = Field(default=2200, ge=0)
    agreement_restart_delay_ms: int = Field(default=2500, ge=0)
    chat_restart_delay_ms: int = Field(default=3000, ge=0)
    error_restart_delay_ms: int = Field(default=3000, ge=0)


class PhraseConfig(BaseModel):
    """Phrase sets recognised in voice and form input."""

    stop_phrases: list[str] = Field(
        default_factory=lambda: [
            "stop executing commands",
            "stop listening",
            "stop recording",
            "stop aura",
            "exit continuous mode",
            "that's all",
            "thank you aura",
            "goodbye aura",
            "end session",
        ]
    )
    agreement_phrases: list[str] = Field(
        default_factory=lambda: [
            "i agree",
            "i accept",
            "i acknowledge",
            "agree to terms",
            "accept terms",
            "agree and continue",
            "accept and continue",
            "agree to the terms",
            "accept the terms",
        ]
    )
    agreement_keywords: list[str] = Field(
        default_factory=lambda: [
            "acknowledge",
            "accept",
            "agree",
            "confirm",
            "terms",
            "conditions",
            "privacy",
            "consent",
        ]
    )
    form_cancel_words: list[str] = Field(
        default_factory=lambda: ["cancel", "stop", "abort", "quit"]
    )
    form_skip_words: list[str] = Field(
        default_factory=lambda: ["skip", "next", "na", "n/a", "not applicable"]
    )


class SearchConfig(BaseModel):
    """Configures lexical variant generation for `search_and_navigate`.

    `synonyms` maps a trigger substring of the topic to extra variants. The
    default table is sample data for a vehicle-registration tax portal; deploy
    with a table that fits the sites being browsed.
    """

    synonyms: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "vehicle": ["vrt", "vehicle registration tax", "motor tax"],
            "vehical": ["vrt", "vehicle registration tax", "motor tax"],
            "tax": ["vrt", "taxation", "revenue"],
            "registration": ["vrt", "register", "registration"],
        }
    )
    min_variant_length: int = Field(default=2, ge=1)
    min_width: float = Field(default=50.0, ge=0.0)
    min_height: float = Field(default=10.0, ge=0.0)


class ExecutorConfig(BaseModel):
    """Configures command execution timing."""

    click_delay_ms: int = Field(default=400, ge=0)
    highlight_ms: int = Field(default=1500, ge=0)
    settle_delay_ms: int = Field(default=1000, ge=0)
    suggestion_element_limit: int = Field(default=25, ge=1)


class LLMFeatureConfig(BaseModel):
    """Maps one application feature to a provider/model and optional fallback."""

    provider: Literal["openai", "ollama"]
    model: str
    env: str | None = None
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    fallback: LLMFeatureConfig | None = None


def _default_features() -> dict[str, LLMFeatureConfig]:
    local = LLMFeatureConfig(provider="ollama", model="llama3.2")
    return {
        "navigator": LLMFeatureConfig(
            provider="openai", model="gpt-3.5-turbo", env="OPENAI_NAV_API_KEY", fallback=local
        ),
        "simplification": LLMFeatureConfig(
            provider="openai", model="gpt-3.5-turbo", env="OPENAI_SIMPLIFY_API_KEY", fallback=local
        ),
        "accessibility_advisor": LLMFeatureConfig(
            provider="openai", model="gpt-3.5-turbo", env="OPENAI_WCAG_API_KEY", fallback=local
        ),
        "simplification_local": local,
        "next_steps": local,
        "chat": local,
        "classification": LLMFeatureConfig(
            provider="ollama", model="mistral:7b-instruct-v0.2-q4_0", temperature=0.0
        ),
    }


class AuraConfig(BaseModel):
    """Aggregate configuration injected into the application context."""

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    simplification: SimplificationConfig = Field(default_factory=SimplificationConfig)
    recording: RecordingConfig = Field(default_factory=RecordingConfig)
    phrases: PhraseConfig = Field(default_factory=PhraseConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    llm_features: dict[str, LLMFeatureConfig] = Field(default_factory=_default_features)
    ollama_base_url: str = "http://localhost:11434"

    def feature(self, name: str) -> LLMFeatureConfig | None:
        return self.llm_features.get(name)


def resolve_api_key(
    feature: str,
    config: AuraConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve the OpenAI key for a feature.

    Order: the feature's own env var, then `OPENAI_API_KEY`, then
    `CHATGPT_API_KEY`. Features not backed by OpenAI resolve to "".
    """

    cfg = (config or AuraConfig()).feature(feature)
    if cfg is None or cfg.provider != "openai":
        return ""
    env = os.environ if environ is None else environ
    specific = env.get(cfg.env, "") if cfg.env else ""
    return specific or env.get("OPENAI_API_KEY", "") or env.get("CHATGPT_API_KEY", "")
