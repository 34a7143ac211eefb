"""Derive the 1-10 TasteProfile from the stored palate."""

from typing import Any

from beanie import PydanticObjectId

from pourtrait.models._common import utc_now
from pourtrait.models.palate import PalateProfile
from pourtrait.models.taste_profile import (
    FlavorProfile,
    GeneralPreferences,
    PriceRange,
    TasteProfile,
)

# Price band (USD) per budget tier
BUDGET_PRICE_RANGES = {
    "weeknight": (10, 25),
    "weekend": (20, 50),
    "celebration": (50, 150),
}
DEFAULT_PRICE_RANGE = (15, 40)
DERIVED_CONFIDENCE = 0.8


def to_scale10(value: float | None, fallback: float = 0.5) -> int:
    v = value if isinstance(value, (int, float)) else fallback
    scaled = round(max(0.0, min(1.0, v)) * 9) + 1
    return max(1, min(10, scaled))


def to_body(value: float | None) -> str:
    v = value if isinstance(value, (int, float)) else 0.5
    if v < 0.4:
        return "light"
    if v > 0.7:
        return "full"
    return "medium"


def _first_present(base: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if base.get(key) is not None:
            return base[key]
    return None


def build_flavor_profile(base: dict[str, Any], palate: PalateProfile | None) -> FlavorProfile:
    """One category's profile; ``base`` is the camelCase flavor map entry."""
    oak = _first_present(base, "oak")
    if oak is None and palate is not None:
        oak = palate.oak
    return FlavorProfile(
        fruitiness=to_scale10(base.get("fruitRipeness"), 0.5),
        earthiness=to_scale10(_first_present(base, "earthiness", "minerality"), 0.5),
        oakiness=to_scale10(oak, 0.3),
        acidity=to_scale10(palate.acidity if palate else None, 0.5),
        tannins=to_scale10(palate.tannin if palate else None, 0.5),
        sweetness=to_scale10(palate.sweetness if palate else None, 0.3),
        body=to_body(palate.body if palate else None),
        preferred_regions=list(base.get("preferredRegions") or []),
        preferred_varietals=list(base.get("preferredVarietals") or []),
        disliked_characteristics=list(palate.dislikes) if palate else [],
    )


def price_range_for_tier(budget_tier: str | None) -> PriceRange:
    low, high = BUDGET_PRICE_RANGES.get((budget_tier or "").lower(), DEFAULT_PRICE_RANGE)
    return PriceRange(min=low, max=high, currency="USD")


def taste_profile_from_palate(
    owner_id: PydanticObjectId, palate: PalateProfile | None
) -> TasteProfile:
    flavor_maps = palate.flavor_maps if palate else {}
    return TasteProfile(
        owner_id=owner_id,
        red_wine_preferences=build_flavor_profile(flavor_maps.get("red") or {}, palate),
        white_wine_preferences=build_flavor_profile(flavor_maps.get("white") or {}, palate),
        sparkling_preferences=build_flavor_profile(flavor_maps.get("sparkling") or {}, palate),
        general_preferences=GeneralPreferences(
            price_range=price_range_for_tier(palate.budget_tier if palate else None),
            food_pairing_importance=5,
        ),
        confidence_score=(
            palate.confidence_score
            if palate is not None and palate.confidence_score is not None
            else DERIVED_CONFIDENCE
        ),
        last_updated=palate.updated_at if palate else utc_now(),
    )


async def sync_taste_profile(owner_id: PydanticObjectId) -> TasteProfile:
    """Re-derive and store the TasteProfile; the learning history is kept."""
    palate = await PalateProfile.find_one(PalateProfile.owner_id == owner_id)
    derived = taste_profile_from_palate(owner_id, palate)

    existing = await TasteProfile.find_one(TasteProfile.owner_id == owner_id)
    if existing is not None:
        derived.id = existing.id
        derived.learning_history = existing.learning_history
    await derived.save()
    return derived
