"""Restaurant analysis, food pairing and recommendation log schemas (camelCase on the wire)."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from pourtrait.schemas.base import CamelModel
from pourtrait.schemas.wine import WineResponse

Urgency = Literal["low", "medium", "high"]
MatchType = Literal["exact", "partial", "similar", "none"]
PairingType = Literal["classic", "regional", "complementary", "contrasting", "adventurous"]


class PriceRangeInput(CamelModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    currency: str = "USD"


class MealContext(CamelModel):
    dish_name: Optional[str] = None
    cuisine: Optional[str] = None
    main_ingredient: Optional[str] = None
    cooking_method: Optional[str] = None
    spice_level: Optional[Literal["mild", "medium", "spicy"]] = None
    richness: Optional[Literal["light", "medium", "rich"]] = None
    occasion: Optional[str] = None


class RecommendationContext(CamelModel):
    occasion: Optional[str] = None
    food_pairing: Optional[str] = None
    price_range: Optional[PriceRangeInput] = None
    urgency: Optional[Urgency] = None
    companions: Optional[list[str]] = None
    time_of_day: Optional[Literal["morning", "afternoon", "evening", "late_night"]] = None
    season: Optional[Literal["spring", "summer", "fall", "winter"]] = None
    meal: Optional[MealContext] = None


class ExtractedWine(CamelModel):
    """One entry read off a restaurant wine list."""

    name: str = Field(min_length=1)
    producer: Optional[str] = None
    vintage: Optional[int] = None
    price: Optional[str] = None
    description: Optional[str] = None
    confidence: float = Field(default=1.0, ge=0, le=1)

    @field_validator("price", mode="before")
    @classmethod
    def _price_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v


class WineMatch(CamelModel):
    extracted_wine: ExtractedWine
    matched_wine: Optional[WineResponse] = None
    confidence: float
    match_type: MatchType
    matched_fields: list[str] = Field(default_factory=list)


class RestaurantRecommendation(CamelModel):
    wine: WineMatch
    score: float
    reasoning: list[str]
    food_pairing_score: float
    price_score: float
    taste_profile_score: float
    explanation: str


class AnalysisMetadata(CamelModel):
    processing_time: int
    matching_accuracy: float
    recommendation_confidence: float


class RestaurantAnalysis(CamelModel):
    total_wines: int
    processed_wines: list[WineMatch]
    recommendations: list[RestaurantRecommendation]
    context: RecommendationContext
    analysis_metadata: AnalysisMetadata


class Temperature(CamelModel):
    celsius: int
    fahrenheit: int


class ServingRecommendations(CamelModel):
    temperature: Temperature
    decanting_time: Optional[int] = None
    glass_type: str
    serving_size: str
    optimal_timing: str


class ServingTips(CamelModel):
    wine_temperature: Optional[str] = None
    serving_order: Optional[str] = None
    glassware: Optional[str] = None
    timing: Optional[str] = None
    preparation: Optional[list[str]] = None


class FoodPairingRequest(CamelModel):
    food_description: str = Field(min_length=1, max_length=500)
    cuisine: Optional[str] = None
    cooking_method: Optional[str] = None
    spice_level: Optional[Literal["none", "mild", "medium", "hot"]] = None
    richness: Optional[Literal["light", "medium", "rich"]] = None
    context: Optional[RecommendationContext] = None


class PairingRecommendation(CamelModel):
    id: Optional[str] = None
    type: Literal["inventory", "purchase", "pairing"]
    wine_id: Optional[str] = None
    wine: Optional[WineResponse] = None
    context: dict[str, Any] = Field(default_factory=dict)
    reasoning: str
    confidence: float
    pairing_score: float
    pairing_type: PairingType
    pairing_explanation: str
    educational_context: Optional[str] = None
    serving_recommendations: Optional[ServingRecommendations] = None


class FoodPairingResponse(CamelModel):
    pairings: list[PairingRecommendation]
    reasoning: str
    confidence: float
    educational_notes: str
    alternative_pairings: Optional[list[PairingRecommendation]] = None
    serving_tips: Optional[ServingTips] = None


class ContextualFilter(CamelModel):
    price_range: Optional[PriceRangeInput] = None
    wine_type: Optional[list[str]] = None
    availability: Literal["inventory_only", "purchase_allowed", "any"] = "inventory_only"
    urgency: Optional[Urgency] = None
    occasion: Optional[str] = None
    companions: Optional[int] = None


class RecommendationRecord(CamelModel):
    """A stored recommendation as returned by the history endpoint."""

    id: str
    type: str
    wine_id: Optional[str] = None
    suggested_wine: Optional[dict[str, Any]] = None
    context: dict[str, Any] = Field(default_factory=dict)
    reasoning: str
    confidence: float
    user_feedback: Optional[str] = None
    feedback_reason: Optional[str] = None
    created_at: datetime
