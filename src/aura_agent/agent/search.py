"""Topic resolution for `search_and_navigate`: direct URLs and scored link search."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from aura_agent.config import SearchConfig

_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
_DOMAIN_PATTERN = re.compile(
    r"^(?:go\s+to\s+|open\s+)?([a-z0-9.-]+\.[a-z]{2,})(\s*/[^\s]*)?$", re.IGNORECASE
)


@dataclass(slots=True, frozen=True)
class Candidate:
    """A visible clickable element reported by the candidate scan."""

    index: int
    text: str
    href: str
    top: float
    width: float
    height: float

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Candidate":
        return cls(
            index=int(payload.get("index", 0)),
            text=str(payload.get("text") or ""),
            href=str(payload.get("href") or ""),
            top=float(payload.get("top") or 0.0),
            width=float(payload.get("width") or 0.0),
            height=float(payload.get("height") or 0.0),
        )


@dataclass(slots=True, frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: int
    matched_term: str


def resolve_navigation_url(topic: str) -> str | None:
    """Return an absolute URL when the topic is a URL or bare domain."""

    raw = topic.strip()
    if _SCHEME_PATTERN.match(raw):
        return raw
    match = _DOMAIN_PATTERN.match(raw)
    if match is None:
        return None
    path = (match.group(2) or "").strip()
    return f"https://{match.group(1)}{path}"


def topic_variants(topic: str, config: SearchConfig | None = None) -> list[str]:
    """Lexical variants of a topic, in priority order and without duplicates."""

    cfg = config or SearchConfig()
    lowered = topic.strip().lower()
    variants: list[str] = [lowered, re.sub(r"\s+", "", lowered), *lowered.split()]
    for trigger, extras in cfg.synonyms.items():
        if trigger.lower() in lowered:
            variants.extend(extra.lower() for extra in extras)

    seen: set[str] = set()
    ordered: list[str] = []
    for variant in variants:
        if len(variant) < cfg.min_variant_length or variant in seen:
            continue
        seen.add(variant)
        ordered.append(variant)
    return ordered


def score_candidates(
    candidates: Iterable[Candidate],
    variants: Sequence[str],
    config: SearchConfig | None = None,
) -> list[ScoredCandidate]:
    """Rank matching candidates by summed variant length, then by page position."""

    cfg = config or SearchConfig()
    scored: list[ScoredCandidate] = []
    for candidate in candidates:
        if candidate.width <= cfg.min_width or candidate.height <= cfg.min_height:
            continue
        haystack = f"{candidate.text} {candidate.href}".lower()
        matched = next((variant for variant in variants if variant in haystack), None)
        if matched is None:
            continue
        score = sum(len(variant) for variant in variants if variant in haystack)
        scored.append(ScoredCandidate(candidate=candidate, score=score, matched_term=matched))

    scored.sort(key=lambda item: (-item.score, item.candidate.top))
    return scored


def best_match(
    candidates: Iterable[Candidate],
    topic: str,
    config: SearchConfig | None = None,
) -> ScoredCandidate | None:
    ranked = score_candidates(candidates, topic_variants(topic, config), config)
    return ranked[0] if ranked else None
