"""Claude Vision extraction of restaurant wine lists."""

import base64
import json
import logging
from typing import Any

from pydantic import ValidationError

from pourtrait.config import settings
from pourtrait.schemas.recommendation import ExtractedWine
from pourtrait.services.llm import (
    extract_first_json_object,
    get_anthropic_client,
    is_available,
    response_text,
)

logger = logging.getLogger(__name__)

SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
VISION_MAX_TOKENS = 2048

WINE_LIST_PROMPT = """Read this restaurant wine list photo and extract every wine you can see.
Return ONLY a valid JSON object of this shape:

{
    "wines": [
        {
            "name": "Wine name or cuvée",
            "producer": "Producer or estate, null if not shown",
            "vintage": 2018,
            "price": "Price exactly as printed, e.g. \\"$85\\", null if not shown",
            "description": "Any region, grape or tasting text printed next to the wine",
            "confidence": 0.9
        }
    ]
}

Important:
- vintage is a number (year) or null; "NV" means null
- confidence is how sure you are about the entry, between 0 and 1
- include by-the-glass and by-the-bottle sections
- skip section headings, cocktails, beers and spirits"""


class WineListExtractionError(Exception):
    """The photo could not be read as a wine list."""


def _parse_entries(content: str) -> list[ExtractedWine]:
    payload = json.loads(extract_first_json_object(content) or content)
    raw_wines: list[Any] = payload.get("wines", []) if isinstance(payload, dict) else []

    entries: list[ExtractedWine] = []
    for raw in raw_wines:
        try:
            entries.append(ExtractedWine.model_validate(raw))
        except ValidationError as e:
            logger.debug("Skipping unreadable wine list entry %r: %s", raw, e)
    return entries


async def extract_wine_list(
    image_data: bytes,
    media_type: str = "image/jpeg",
) -> list[ExtractedWine]:
    """Extract wine list entries from a photo.

    Raises:
        WineListExtractionError: If vision is unavailable or the reply is unusable.
    """
    if not is_available():
        raise WineListExtractionError("Anthropic API key is not configured")
    if media_type not in SUPPORTED_MEDIA_TYPES:
        raise WineListExtractionError(f"Unsupported image type: {media_type}")

    image_base64 = base64.standard_b64encode(image_data).decode("utf-8")
    client = get_anthropic_client()
    try:
        message = await client.messages.create(
            model=settings.llm_vision_model,
            max_tokens=VISION_MAX_TOKENS,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": image_base64,
                            },
                        },
                        {"type": "text", "text": WINE_LIST_PROMPT},
                    ],
                }
            ],
        )
    except Exception as e:
        logger.error("Claude Vision wine list extraction failed: %s", e)
        raise WineListExtractionError("Wine list extraction failed") from e

    content = response_text(message)
    try:
        entries = _parse_entries(content)
    except (json.JSONDecodeError, AttributeError) as e:
        logger.error("Failed to parse Claude response as JSON: %s", e)
        logger.debug("Response was: %s", content)
        raise WineListExtractionError("Could not read the wine list") from e

    logger.info("Extracted %d wines from wine list photo", len(entries))
    return entries
