"""Prompt for mapping onboarding free-text to a structured profile."""

import json
from typing import Any

SYSTEM_PROMPT = "\n".join(
    [
        "You are a sommelier data normalizer.",
        "Return STRICT JSON that conforms exactly to the requested schema keys.",
        "Rules:",
        "- Infer reasonable values from user free-text.",
        "- When uncertain, choose sensible midpoints/defaults rather than refusing.",
        "- All numeric intensities are in [0,1].",
        "- Only include keys present in the requested schema; do not add commentary.",
    ]
)

FEW_SHOT_USER = {
    "experience": "novice",
    "answers": {
        "free_enjoyed": "I liked a light white that tasted crisp and citrusy",
        "free_disliked": "Too oaky and buttery",
    },
}

FEW_SHOT_ASSISTANT = {
    "userId": "example",
    "stablePalate": {
        "sweetness": 0.3,
        "acidity": 0.7,
        "tannin": 0.1,
        "bitterness": 0.2,
        "body": 0.3,
        "alcoholWarmth": 0.3,
        "sparkleIntensity": 0.4,
    },
    "aromaAffinities": [{"family": "citrus", "affinity": 0.6}],
    "styleLevers": {
        "oak": 0.1,
        "malolacticButter": 0.1,
        "oxidative": 0.2,
        "minerality": 0.6,
        "fruitRipeness": 0.4,
    },
    "contextWeights": [],
    "foodProfile": {
        "heatLevel": 2,
        "salt": 0.5,
        "fat": 0.5,
        "sauceSweetness": 0.3,
        "sauceAcidity": 0.6,
        "cuisines": [],
        "proteins": [],
    },
    "preferences": {"novelty": 0.5, "budgetTier": "weekend", "values": []},
    "dislikes": ["oaky", "buttery"],
    "sparkling": {},
    "wineKnowledge": "novice",
    "flavorMaps": {},
}


def build_mapping_messages(
    user_id: str, experience: str, answers: dict[str, Any]
) -> tuple[str, list[dict[str, str]]]:
    """Return ``(system, messages)`` for the Messages API.

    The few-shot pair precedes the real request so the model sees one
    complete example of the expected JSON.
    """
    messages = [
        {"role": "user", "content": json.dumps(FEW_SHOT_USER)},
        {"role": "assistant", "content": json.dumps(FEW_SHOT_ASSISTANT)},
        {
            "role": "user",
            "content": json.dumps(
                {"userId": user_id, "experience": experience, "answers": answers}
            ),
        },
    ]
    return SYSTEM_PROMPT, messages
