"""Normalized user profile produced by the onboarding mapper (camelCase on the wire)."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional

from beanie import PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from pourtrait.models.taste_profile import (
    FlavorProfile,
    GeneralPreferences,
    TastingRecord,
)
from pourtrait.schemas.base import CamelModel

Scale01 = Annotated[float, Field(ge=0, le=1)]


class AromaFamily(str, Enum):
    CITRUS = "citrus"
    STONE_FRUIT = "stone_fruit"
    TROPICAL = "tropical"
    RED_FRUIT = "red_fruit"
    BLACK_FRUIT = "black_fruit"
    FLORAL = "floral"
    HERBAL_GREEN = "herbal_green"
    PEPPER_SPICE = "pepper_spice"
    EARTH_MINERAL = "earth_mineral"
    OAK_VANILLA_SMOKE = "oak_vanilla_smoke"
    DAIRY_BUTTER = "dairy_butter"
    HONEY_OXIDATIVE = "honey_oxidative"


class OccasionCode(str, Enum):
    EVERYDAY = "everyday"
    HOT_DAY_PATIO = "hot_day_patio"
    COZY_WINTER = "cozy_winter"
    SPICY_FOOD_NIGHT = "spicy_food_night"
    STEAK_NIGHT = "steak_night"
    SEAFOOD_SUSHI = "seafood_sushi"
    PIZZA_PASTA = "pizza_pasta"
    CELEBRATION_TOAST = "celebration_toast"
    DESSERT_NIGHT = "dessert_night"
    APERITIF = "aperitif"


BudgetTier = Literal["weeknight", "weekend", "celebration"]
WineKnowledge = Literal["novice", "intermediate", "expert"]


class StablePalate(CamelModel):
    sweetness: Scale01
    acidity: Scale01
    tannin: Scale01
    bitterness: Scale01
    body: Scale01
    alcohol_warmth: Scale01
    sparkle_intensity: Scale01


class StyleLevers(CamelModel):
    oak: Scale01
    malolactic_butter: Scale01
    oxidative: Scale01
    minerality: Scale01
    fruit_ripeness: Scale01


class AromaAffinity(CamelModel):
    family: AromaFamily
    affinity: float = Field(ge=-1, le=1)


class ContextWeightsEntry(CamelModel):
    occasion: OccasionCode
    weights: dict[str, Scale01] = Field(default_factory=dict)


class FoodProfile(CamelModel):
    heat_level: int = Field(ge=0, le=5)
    salt: Scale01
    fat: Scale01
    sauce_sweetness: Scale01
    sauce_acidity: Scale01
    cuisines: list[str] = Field(default_factory=list)
    proteins: list[str] = Field(default_factory=list)


class FlavorMapCategory(CamelModel):
    tannin: Optional[Scale01] = None
    acidity: Optional[Scale01] = None
    body: Optional[Scale01] = None
    oak: Optional[Scale01] = None
    fruit_ripeness: Optional[Scale01] = None
    aroma_affinities_top: Optional[list[AromaFamily]] = None
    dryness: Optional[str] = None
    bubble_intensity: Optional[Scale01] = None


class FlavorMaps(CamelModel):
    red: Optional[FlavorMapCategory] = None
    white: Optional[FlavorMapCategory] = None
    sparkling: Optional[FlavorMapCategory] = None


class ProfilePreferences(CamelModel):
    novelty: Scale01
    budget_tier: BudgetTier
    values: Optional[list[str]] = None


class SparklingPreferences(CamelModel):
    dryness_band: Optional[str] = None
    bubble_intensity: Optional[Scale01] = None


class UserProfile(CamelModel):
    """The full normalized profile; every intensity is in [0, 1]."""

    user_id: str
    stable_palate: StablePalate
    aroma_affinities: list[AromaAffinity]
    style_levers: StyleLevers
    context_weights: list[ContextWeightsEntry]
    food_profile: Optional[FoodProfile] = None
    preferences: ProfilePreferences
    dislikes: list[str]
    sparkling: SparklingPreferences
    wine_knowledge: WineKnowledge
    flavor_maps: FlavorMaps


FREE_TEXT_KEYS = (
    "free_enjoyed",
    "free_disliked",
    "free_contexts",
    "free_descriptors",
    "sweetness_prompt",
    "dryness_bitterness_prompt",
)


class MapRequest(CamelModel):
    """Onboarding answers: experience level plus free-text keyed by question id."""

    experience: str = Field(min_length=1)
    free_text_answers: dict[str, str] = Field(default_factory=dict)
    persist: bool = False


class EvaluationCheck(CamelModel):
    id: str
    ok: bool
    weight: float
    message: str
    expected: Any = None
    actual: Any = None


class Evaluation(CamelModel):
    confidence: float
    checks: list[EvaluationCheck]
    commentary: str


class TasteProfileUpdate(BaseModel):
    """Manual recalibration of the 1-10 taste profile; omitted parts are kept."""

    red_wine_preferences: Optional[FlavorProfile] = None
    white_wine_preferences: Optional[FlavorProfile] = None
    sparkling_preferences: Optional[FlavorProfile] = None
    general_preferences: Optional[GeneralPreferences] = None


class TastingInput(BaseModel):
    wine_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=1000)
    characteristics: list[str] = Field(default_factory=list)
    tasted_at: Optional[datetime] = None


class TasteProfileResponse(BaseModel):
    id: str
    red_wine_preferences: FlavorProfile
    white_wine_preferences: FlavorProfile
    sparkling_preferences: FlavorProfile
    general_preferences: GeneralPreferences
    learning_history: list[TastingRecord]
    confidence_score: float
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v: Any) -> str:
        if isinstance(v, PydanticObjectId):
            return str(v)
        return v
