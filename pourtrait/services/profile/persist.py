"""Store a mapped profile across the palate collections."""

import logging

from pourtrait.models._common import utc_now
from pourtrait.models.palate import (
    AromaPreference,
    ContextPreference,
    FoodProfileRecord,
    PalateProfile,
)
from pourtrait.models.user import User
from pourtrait.schemas.profile import UserProfile
from pourtrait.services.profile.taste import sync_taste_profile

logger = logging.getLogger(__name__)

# wineKnowledge -> account experience level
EXPERIENCE_LEVELS = {
    "novice": "beginner",
    "intermediate": "intermediate",
    "expert": "advanced",
}


async def upsert_user_profile(
    user: User, profile: UserProfile, confidence: float | None = None
) -> PalateProfile:
    """Upsert the palate, replace aromas and contexts, upsert the food profile.

    Aromas and contexts are only replaced when the new lists are non-empty.
    Also completes onboarding on the user and refreshes the TasteProfile.
    """
    owner_id = user.id
    palate_values = {
        "sweetness": profile.stable_palate.sweetness,
        "acidity": profile.stable_palate.acidity,
        "tannin": profile.stable_palate.tannin,
        "bitterness": profile.stable_palate.bitterness,
        "body": profile.stable_palate.body,
        "alcohol_warmth": profile.stable_palate.alcohol_warmth,
        "sparkle_intensity": profile.stable_palate.sparkle_intensity,
        "oak": profile.style_levers.oak,
        "malolactic_butter": profile.style_levers.malolactic_butter,
        "oxidative": profile.style_levers.oxidative,
        "minerality": profile.style_levers.minerality,
        "fruit_ripeness": profile.style_levers.fruit_ripeness,
        "sparkling_dryness": profile.sparkling.dryness_band,
        "wine_knowledge": profile.wine_knowledge,
        "novelty": profile.preferences.novelty,
        "budget_tier": profile.preferences.budget_tier,
        "dislikes": profile.dislikes,
        "flavor_maps": profile.flavor_maps.model_dump(by_alias=True, exclude_none=True, mode="json"),
        "confidence_score": confidence,
        "updated_at": utc_now(),
    }

    palate = await PalateProfile.find_one(PalateProfile.owner_id == owner_id)
    if palate is None:
        palate = PalateProfile(owner_id=owner_id, **palate_values)
    else:
        for field, value in palate_values.items():
            setattr(palate, field, value)
    await palate.save()

    if profile.aroma_affinities:
        await AromaPreference.find(AromaPreference.owner_id == owner_id).delete()
        await AromaPreference.insert_many(
            [
                AromaPreference(owner_id=owner_id, family=a.family.value, affinity=a.affinity)
                for a in profile.aroma_affinities
            ]
        )

    if profile.context_weights:
        await ContextPreference.find(ContextPreference.owner_id == owner_id).delete()
        await ContextPreference.insert_many(
            [
                ContextPreference(owner_id=owner_id, occasion=c.occasion.value, weights=c.weights)
                for c in profile.context_weights
            ]
        )

    if profile.food_profile is not None:
        food = profile.food_profile
        food_values = {
            "heat_level": food.heat_level,
            "salt": food.salt,
            "fat": food.fat,
            "sauce_sweetness": food.sauce_sweetness,
            "sauce_acidity": food.sauce_acidity,
            "cuisines": food.cuisines,
            "proteins": food.proteins,
            "updated_at": utc_now(),
        }
        record = await FoodProfileRecord.find_one(FoodProfileRecord.owner_id == owner_id)
        if record is None:
            record = FoodProfileRecord(owner_id=owner_id, **food_values)
        else:
            for field, value in food_values.items():
                setattr(record, field, value)
        await record.save()

    user.onboarding_completed = True
    user.experience_level = EXPERIENCE_LEVELS.get(profile.wine_knowledge, user.experience_level)
    user.updated_at = utc_now()
    await user.save()

    await sync_taste_profile(owner_id)
    logger.info("Stored palate profile (user=%s)", owner_id)
    return palate


async def load_profile_summary(user: User) -> dict:
    """Stored palate with its aroma and context rows, as plain dicts."""
    palate = await PalateProfile.find_one(PalateProfile.owner_id == user.id)
    aromas = await AromaPreference.find(AromaPreference.owner_id == user.id).to_list()
    contexts = await ContextPreference.find(ContextPreference.owner_id == user.id).to_list()
    food = await FoodProfileRecord.find_one(FoodProfileRecord.owner_id == user.id)

    exclude = {"id", "owner_id", "revision_id"}
    return {
        "profile": palate.model_dump(mode="json", exclude=exclude) if palate else None,
        "aromas": [{"family": a.family, "affinity": a.affinity} for a in aromas],
        "contexts": [{"occasion": c.occasion, "weights": c.weights} for c in contexts],
        "food": food.model_dump(mode="json", exclude=exclude) if food else None,
    }
