"""Anthropic client access and helpers for model replies."""

import logging
import os

import anthropic

from pourtrait.config import settings

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


def get_api_key() -> str | None:
    return settings.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY")


def is_available() -> bool:
    return bool(get_api_key())


def get_anthropic_client() -> anthropic.AsyncAnthropic:
    """Return the shared async client, creating it on first use.

    Raises:
        ValueError: If no API key is configured.
    """
    global _client
    if _client is None:
        api_key = get_api_key()
        if not api_key:
            raise ValueError("No Anthropic API key configured")
        _client = anthropic.AsyncAnthropic(api_key=api_key)
    return _client


def reset_client() -> None:
    global _client
    _client = None


def response_text(message: anthropic.types.Message) -> str:
    """Concatenate the text blocks of a Messages API reply."""
    return "".join(block.text for block in message.content if getattr(block, "type", None) == "text")


def extract_first_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span in ``text``.

    Tolerates prose or code fences around the object. Braces inside JSON
    strings are not special-cased.
    """
    if not text:
        return None
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None
