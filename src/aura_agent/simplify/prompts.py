"""Prompt builders and option handling for text simplification."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from aura_agent.types import SimplificationOptions

_VALID_COMPLEXITY = ("simple", "moderate", "advanced")

_BASE_PROMPT = (
    "You are an expert text simplification specialist. Your goal is to make content "
    "more accessible and easier to understand while preserving all important "
    "information and meaning."
)

_COMPLEXITY_INSTRUCTIONS = {
    "simple": """COMPLEXITY LEVEL: SIMPLE (Elementary/Middle School)
- Use only common, everyday words that a 12-year-old would understand
- Keep sentences very short (maximum 15 words)
- Avoid all technical terms, jargon, and complex concepts
- Replace difficult words with simpler alternatives
- Break complex ideas into multiple simple sentences
- Use active voice instead of passive voice
- Target reading level: 6th-8th grade""",
    "moderate": """COMPLEXITY LEVEL: MODERATE (High School)
- Use common vocabulary that most adults would understand
- Keep sentences at a reasonable length (maximum 20 words)
- Explain technical terms in simple words when they appear
- Replace overly complex words with clearer alternatives
- Break long, complex sentences into shorter ones
- Maintain important details while improving readability
- Target reading level: 9th-12th grade""",
    "advanced": """COMPLEXITY LEVEL: ADVANCED (Clear Professional)
- Use professional vocabulary but avoid unnecessary jargon
- Keep sentences reasonably short (maximum 25 words)
- Explain technical terms when they must be used
- Maintain sophisticated ideas but improve clarity
- Use precise but accessible language
- Keep logical flow and detailed information
- Target reading level: College level""",
}

_PRESERVE_FORMATTING = """FORMATTING PRESERVATION:
- Keep paragraph breaks and structure
- Maintain headings and their hierarchy
- Preserve lists and bullet points
- Keep important emphasis and structure
- Maintain logical document flow"""

_FREE_FORMATTING = """FORMATTING APPROACH:
- Focus on content clarity over formatting
- Create natural paragraph breaks for readability
- Structure information in logical flow
- Don't worry about preserving original formatting"""

_GENERAL_GUIDELINES = """GENERAL GUIDELINES:
- Never lose important information or meaning
- Always preserve facts, numbers, and key details
- Maintain the author's intent and tone
- Use transitions to connect ideas clearly
- Remove unnecessary filler words and redundancy
- Format the simplified text using Markdown (headings, bold, lists) where it helps readability
- Simplify only natural language prose; output code, CSS or JSON blocks verbatim inside a code block
- Never simplify cookie banners or script content"""

_OUTPUT_RULE = (
    "IMPORTANT: Return only the simplified text without any explanations, comments, "
    'or meta-text. Do not add phrases like "Here is the simplified version:".'
)

_MS_PER_WORD = {"simple": 50, "moderate": 75, "advanced": 100}


def validate_options(
    options: Mapping[str, Any] | SimplificationOptions | None = None,
    *,
    default_complexity: str = "moderate",
) -> SimplificationOptions:
    """Normalize user options; unknown complexity falls back to the default."""

    if isinstance(options, SimplificationOptions):
        raw: Mapping[str, Any] = {
            "complexity": options.complexity,
            "preserve_formatting": options.preserve_formatting,
            "title": options.title,
            "url": options.url,
            "word_count": options.word_count,
        }
    else:
        raw = options or {}

    complexity = raw.get("complexity")
    if complexity not in _VALID_COMPLEXITY:
        complexity = default_complexity if default_complexity in _VALID_COMPLEXITY else "moderate"

    try:
        word_count = max(0, int(raw.get("word_count") or 0))
    except (TypeError, ValueError):
        word_count = 0

    return SimplificationOptions(
        complexity=complexity,
        preserve_formatting=bool(raw.get("preserve_formatting", False)),
        title=str(raw.get("title") or ""),
        url=str(raw.get("url") or ""),
        word_count=word_count,
    )


def build_system_prompt(complexity: str, preserve_formatting: bool = False) -> str:
    instructions = _COMPLEXITY_INSTRUCTIONS.get(complexity, _COMPLEXITY_INSTRUCTIONS["moderate"])
    formatting = _PRESERVE_FORMATTING if preserve_formatting else _FREE_FORMATTING
    return "\n\n".join([_BASE_PROMPT, instructions, formatting, _GENERAL_GUIDELINES, _OUTPUT_RULE])


def build_simplification_messages(
    text: str, options: SimplificationOptions
) -> list[dict[str, str]]:
    context: list[str] = []
    if options.title:
        context.append(f"- Page Title: {options.title}")
    if options.url:
        context.append(f"- Source URL: {options.url}")
    if options.word_count > 0:
        context.append(f"- Original Word Count: {options.word_count} words")

    user_prompt = f"Please simplify the following text:\n\n{text}"
    if context:
        user_prompt = "CONTEXT INFORMATION:\n" + "\n".join(context) + "\n\n" + user_prompt

    return [
        {"role": "system", "content": build_system_prompt(options.complexity, options.preserve_formatting)},
        {"role": "user", "content": user_prompt},
    ]


def build_chunk_messages(
    chunk: str, chunk_index: int, total_chunks: int, options: SimplificationOptions
) -> list[dict[str, str]]:
    header = f"CHUNK PROCESSING: This is part {chunk_index + 1} of {total_chunks} from a larger document."
    if options.title:
        header += f"\n\nOriginal Document: {options.title}"
    user_prompt = (
        f"{header}\n\nPlease simplify this text chunk while maintaining consistency "
        f"with the overall document:\n\n{chunk}"
    )
    return [
        {"role": "system", "content": build_system_prompt(options.complexity, options.preserve_formatting)},
        {"role": "user", "content": user_prompt},
    ]


def estimate_processing_time(word_count: int, complexity: str = "moderate") -> int:
    """Rough processing time in milliseconds, never below one second."""

    per_word = _MS_PER_WORD.get(complexity, _MS_PER_WORD["moderate"])
    overhead = min(2000, word_count * 5)
    return max(1000, word_count * per_word + overhead)
