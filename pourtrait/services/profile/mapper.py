"""LLM mapping of onboarding free-text answers to a UserProfile."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import anthropic
from pydantic import ValidationError

from pourtrait.config import settings
from pourtrait.schemas.profile import UserProfile
from pourtrait.services.llm import (
    extract_first_json_object,
    get_anthropic_client,
    is_available,
    response_text,
)
from pourtrait.services.profile.prompt import build_mapping_messages

logger = logging.getLogger(__name__)

OUTPUT_SAMPLE_LENGTH = 500


class ProfileMappingError(Exception):
    """Mapping failed; ``code`` is a stable machine-readable reason."""

    def __init__(self, code: str, message: str, output_sample: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.output_sample = output_sample


class RateLimitedError(ProfileMappingError):
    """The model provider kept answering HTTP 429."""

    def __init__(self, message: str = "LLM provider rate limit exceeded") -> None:
        super().__init__("rate_limited", message)


@dataclass
class MappingResult:
    profile: UserProfile
    summary: str
    used_model: str


def candidate_models() -> list[str]:
    """Configured model first, then fallbacks, without duplicates."""
    models = [settings.llm_model, *settings.llm_fallback_models]
    return list(dict.fromkeys(m for m in models if m))


async def _create(
    client: anthropic.AsyncAnthropic,
    model: str,
    system: str,
    messages: list[dict[str, str]],
) -> anthropic.types.Message:
    """One Messages call; a 429 is retried once after the configured delay."""
    kwargs: dict[str, Any] = {
        "model": model,
        "system": system,
        "messages": messages,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
    }
    try:
        return await client.messages.create(**kwargs)
    except anthropic.RateLimitError:
        logger.warning(
            "Rate limited by model provider (model=%s), retrying in %.1fs",
            model,
            settings.llm_retry_delay_seconds,
        )

    await asyncio.sleep(settings.llm_retry_delay_seconds)
    try:
        return await client.messages.create(**kwargs)
    except anthropic.RateLimitError as e:
        raise RateLimitedError() from e


async def _request_with_fallback(
    client: anthropic.AsyncAnthropic,
    system: str,
    messages: list[dict[str, str]],
) -> tuple[str, str]:
    last_error: Exception | None = None
    for model in candidate_models():
        try:
            message = await _create(client, model, system, messages)
        except RateLimitedError:
            raise
        except anthropic.APIError as e:
            logger.warning("Model %s failed, trying next candidate: %s", model, e)
            last_error = e
            continue

        content = response_text(message)
        if content.strip():
            return content, model
        logger.warning("Model %s returned an empty reply", model)

    raise ProfileMappingError(
        "upstream_error",
        str(last_error) if last_error else "LLM mapping failed",
    )


def parse_profile(content: str) -> UserProfile:
    """Parse a model reply into a validated profile.

    Raises:
        json.JSONDecodeError: If no JSON object can be decoded.
        pydantic.ValidationError: If the object does not match the schema.
    """
    payload = json.loads(extract_first_json_object(content) or content)
    return UserProfile.model_validate(payload)


async def map_free_text_to_profile(
    user_id: str,
    experience: str,
    answers: dict[str, Any],
) -> MappingResult:
    """Map free-text answers to a profile.

    Malformed or schema-invalid output is re-requested once before
    ``ProfileMappingError(code="invalid_output")`` is raised.
    """
    if not is_available():
        raise ProfileMappingError("missing_api_key", "Anthropic API key is not configured")

    client = get_anthropic_client()
    system, messages = build_mapping_messages(user_id, experience, answers)

    output_sample: str | None = None
    for attempt in (1, 2):
        content, used_model = await _request_with_fallback(client, system, messages)
        try:
            profile = parse_profile(content)
        except (json.JSONDecodeError, ValidationError) as e:
            output_sample = content[:OUTPUT_SAMPLE_LENGTH]
            logger.warning(
                "Invalid profile output from %s (attempt %d): %s", used_model, attempt, e
            )
            continue

        logger.info("Mapped profile with %s (experience=%s)", used_model, experience)
        return MappingResult(
            profile=profile,
            summary=f"Profile created from free-text. Experience: {experience}.",
            used_model=used_model,
        )

    raise ProfileMappingError(
        "invalid_output",
        "Model output did not match the profile schema",
        output_sample=output_sample,
    )
