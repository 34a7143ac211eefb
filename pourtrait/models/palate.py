"""Normalized palate data written by the onboarding mapping pipeline.

The LLM output is split across four collections: the palate itself (one
per user), aroma affinities, occasion weights and the food profile.
"""

from datetime import datetime
from typing import Any, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field

from pourtrait.models._common import utc_now


class PalateProfile(Document):
    owner_id: Indexed(PydanticObjectId, unique=True)

    # Stable palate, all in [0, 1]
    sweetness: float
    acidity: float
    tannin: float
    bitterness: float
    body: float
    alcohol_warmth: float
    sparkle_intensity: float

    # Style levers, all in [0, 1]
    oak: float
    malolactic_butter: float
    oxidative: float
    minerality: float
    fruit_ripeness: float

    sparkling_dryness: Optional[str] = None
    wine_knowledge: str = "novice"
    novelty: float = 0.5
    budget_tier: str = "weekend"
    dislikes: list[str] = Field(default_factory=list)
    flavor_maps: dict[str, Any] = Field(default_factory=dict)
    confidence_score: Optional[float] = None
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "palate_profiles"


class AromaPreference(Document):
    owner_id: Indexed(PydanticObjectId)
    family: str
    affinity: float

    class Settings:
        name = "aroma_preferences"


class ContextPreference(Document):
    owner_id: Indexed(PydanticObjectId)
    occasion: str
    weights: dict[str, float] = Field(default_factory=dict)

    class Settings:
        name = "context_preferences"


class FoodProfileRecord(Document):
    owner_id: Indexed(PydanticObjectId, unique=True)
    heat_level: int
    salt: float
    fat: float
    sauce_sweetness: float
    sauce_acidity: float
    cuisines: list[str] = Field(default_factory=list)
    proteins: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "food_profiles"
