"""Per-user taste profile on a 1-10 scale, read by every recommendation surface."""

from datetime import datetime
from typing import Literal, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field

from pourtrait.models._common import utc_now


class FlavorProfile(BaseModel):
    """Flavor preferences for one style of wine (red, white or sparkling)."""

    fruitiness: int = Field(default=5, ge=1, le=10)
    earthiness: int = Field(default=5, ge=1, le=10)
    oakiness: int = Field(default=5, ge=1, le=10)
    acidity: int = Field(default=5, ge=1, le=10)
    tannins: int = Field(default=5, ge=1, le=10)
    sweetness: int = Field(default=5, ge=1, le=10)
    body: Literal["light", "medium", "full"] = "medium"
    preferred_regions: list[str] = Field(default_factory=list)
    preferred_varietals: list[str] = Field(default_factory=list)
    disliked_characteristics: list[str] = Field(default_factory=list)


class PriceRange(BaseModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    currency: str = "USD"


class GeneralPreferences(BaseModel):
    price_range: PriceRange = Field(
        default_factory=lambda: PriceRange(min=15, max=40, currency="USD")
    )
    occasion_preferences: list[str] = Field(default_factory=list)
    food_pairing_importance: int = Field(default=5, ge=1, le=10)
    preferred_regions: list[str] = Field(default_factory=list)


class TastingRecord(BaseModel):
    """An entry in the learning history."""

    wine_id: str
    rating: int = Field(ge=1, le=10)
    notes: Optional[str] = None
    characteristics: list[str] = Field(default_factory=list)
    tasted_at: datetime = Field(default_factory=utc_now)


class TasteProfile(Document):
    """A user's taste profile. One document per user."""

    owner_id: Indexed(PydanticObjectId, unique=True)
    red_wine_preferences: FlavorProfile = Field(default_factory=FlavorProfile)
    white_wine_preferences: FlavorProfile = Field(default_factory=FlavorProfile)
    sparkling_preferences: FlavorProfile = Field(default_factory=FlavorProfile)
    general_preferences: GeneralPreferences = Field(default_factory=GeneralPreferences)
    learning_history: list[TastingRecord] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0, le=1)
    last_updated: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "taste_profiles"

    def preferences_for(self, wine_type: str) -> FlavorProfile:
        """Flavor profile that applies to a wine type; reds stand in for other styles."""
        if wine_type == "white":
            return self.white_wine_preferences
        if wine_type == "sparkling":
            return self.sparkling_preferences
        return self.red_wine_preferences
