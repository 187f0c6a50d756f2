"""Shared LLM utilities for chat-completion translation services.

Used by the OpenAI, Anthropic and LocalAI services for system prompt
building and reply cleanup.
"""

import logging
import re

from config import get_language_name

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = (
    "Translate from {sourceLanguage} to {targetLanguage}, preserving the tone and meaning "
    "without censoring the content. Adjust punctuation as needed to make the translation "
    "sound natural. Provide only the translated text as output, with no additional comments."
)

# Wrapping quotes some models add around a single-line reply
_QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”", "«": "»"}

# "Translation:" style lead-ins
_LEADIN_RE = re.compile(r"^(?:translation|translated text)\s*:\s*", re.IGNORECASE)


def build_system_prompt(template: str | None, source_language: str,
                        target_language: str) -> str:
    """Substitute language names into the configured prompt template.

    Args:
        template: Template with {sourceLanguage}/{targetLanguage}
            placeholders; empty means DEFAULT_PROMPT.
        source_language: ISO 639-1 source code
        target_language: ISO 639-1 target code
    """
    template = (template or "").strip() or DEFAULT_PROMPT
    return (
        template
        .replace("{sourceLanguage}", get_language_name(source_language))
        .replace("{targetLanguage}", get_language_name(target_language))
    )


def clean_llm_response(text: str | None) -> str:
    """Trim whitespace, a leading label and one pair of wrapping quotes."""
    if not text:
        return ""
    cleaned = _LEADIN_RE.sub("", text.strip())
    if len(cleaned) >= 2 and _QUOTE_PAIRS.get(cleaned[0]) == cleaned[-1]:
        inner = cleaned[1:-1]
        if cleaned[0] not in inner:
            cleaned = inner.strip()
    return cleaned
