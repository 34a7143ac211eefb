"""Restaurant wine-list analysis.

Entries read off a wine list are matched against the user's cellar with a
token-set similarity, then scored against the taste profile, the meal and
the price range. Weights and lookup tables are hand-tuned and kept literal.
"""

import logging
import re
import time
import unicodedata

from beanie import PydanticObjectId

from pourtrait.models.taste_profile import TasteProfile
from pourtrait.models.wine import Wine
from pourtrait.schemas.recommendation import (
    AnalysisMetadata,
    ExtractedWine,
    MealContext,
    PriceRangeInput,
    RecommendationContext,
    RestaurantAnalysis,
    RestaurantRecommendation,
    WineMatch,
)
from pourtrait.schemas.wine import WineResponse
from pourtrait.services.drinking_window import type_key

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 10
MIN_RECOMMENDATION_SCORE = 0.3
FIELD_MATCH_THRESHOLD = 0.7

NAME_WEIGHT = 40
PRODUCER_WEIGHT = 30
VINTAGE_WEIGHT = 20
REGION_WEIGHT = 10

BASE_WEIGHT = 0.2
TASTE_WEIGHT = 0.4
FOOD_WEIGHT = 0.25
PRICE_WEIGHT = 0.15

REGION_PATTERNS = [
    re.compile(r"\b(Bordeaux|Burgundy|Champagne|Chianti|Rioja|Napa|Sonoma|Barolo|Brunello)\b", re.I),
    re.compile(r"\b(Tuscany|Loire|Rhône|Alsace|Mosel|Piedmont|Mendoza|Marlborough)\b", re.I),
    re.compile(r"\b(Chablis|Sancerre|Pouilly|Muscadet|Côtes du Rhône|Châteauneuf)\b", re.I),
]

PRICE_PATTERN = re.compile(r"[\d.,]+")

INGREDIENT_SCORES = {
    "red": {
        "beef": 0.8, "lamb": 0.9, "pork": 0.6, "chicken": 0.4, "fish": 0.2,
        "seafood": 0.1, "cheese": 0.7, "pasta": 0.6, "vegetables": 0.3,
    },
    "white": {
        "fish": 0.9, "seafood": 0.8, "chicken": 0.7, "pork": 0.5, "cheese": 0.6,
        "pasta": 0.5, "vegetables": 0.7, "beef": 0.2, "lamb": 0.1,
    },
    "sparkling": {
        "seafood": 0.8, "cheese": 0.7, "chicken": 0.6, "fish": 0.7, "vegetables": 0.5,
        "beef": 0.3, "lamb": 0.3, "pork": 0.4, "pasta": 0.4,
    },
}

COOKING_METHOD_SCORES = {
    "red": {"grilled": 0.3, "roasted": 0.3, "braised": 0.4, "fried": 0.2, "steamed": 0.1, "raw": 0.0},
    "white": {"steamed": 0.4, "poached": 0.4, "grilled": 0.2, "fried": 0.3, "roasted": 0.2, "raw": 0.3},
    "sparkling": {"fried": 0.4, "raw": 0.4, "steamed": 0.3, "grilled": 0.2, "roasted": 0.2, "braised": 0.1},
}

SPICE_LEVEL_SCORES = {
    "red": {"mild": 0.2, "medium": 0.3, "spicy": 0.1},
    "white": {"mild": 0.3, "medium": 0.2, "spicy": 0.3},
    "sparkling": {"mild": 0.2, "medium": 0.3, "spicy": 0.4},
}

RICHNESS_LEVELS = {"light": 1, "medium": 2, "rich": 3}

PAIRING_ADVICE = {
    "red": {
        "beef": "Red wines complement the rich flavors and proteins in beef dishes.",
        "lamb": "The tannins in red wine pair beautifully with lamb's robust flavor.",
        "pork": "A medium-bodied red can enhance the savory qualities of pork.",
        "cheese": "Red wines and aged cheeses create a classic pairing.",
    },
    "white": {
        "fish": "White wines won't overpower the delicate flavors of fish.",
        "seafood": "The acidity in white wine complements seafood perfectly.",
        "chicken": "White wine enhances chicken without overwhelming its subtle taste.",
        "vegetables": "White wines pair well with lighter vegetable dishes.",
    },
    "sparkling": {
        "seafood": "The bubbles and acidity cleanse the palate between bites of seafood.",
        "cheese": "Sparkling wine cuts through rich, creamy cheeses beautifully.",
        "fried": "The effervescence helps cut through fried foods' richness.",
    },
}


class RestaurantAnalysisError(Exception):
    """The wine list could not be analysed."""


# --- matching -------------------------------------------------------------


def normalize_tokens(value: str | None) -> set[str]:
    """Lower-cased, accent-free, punctuation-free word set."""
    if not value:
        return set()
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return set(re.sub(r"[^\w\s]|_", " ", stripped.lower()).split())


def similarity(a: str | None, b: str | None) -> float:
    """Jaccard similarity of the normalized token sets.

    Identical normalized strings, including two empty ones, score 1.
    """
    tokens_a = normalize_tokens(a)
    tokens_b = normalize_tokens(b)
    if tokens_a == tokens_b:
        return 1.0
    union = tokens_a | tokens_b
    return len(tokens_a & tokens_b) / len(union)


def extract_region(description: str | None) -> str | None:
    for pattern in REGION_PATTERNS:
        match = pattern.search(description or "")
        if match:
            return match.group(0)
    return None


def match_type_for(confidence: float) -> str:
    if confidence > 0.9:
        return "exact"
    if confidence > 0.7:
        return "partial"
    if confidence > 0.4:
        return "similar"
    return "none"


def score_match(extracted: ExtractedWine, wine: Wine) -> tuple[float, list[str]]:
    """Weighted field agreement between a list entry and a cellar wine.

    Returns the confidence in [0, 1] and the fields that matched.
    """
    matched_fields: list[str] = []
    score = 0.0
    max_score = 0.0

    max_score += NAME_WEIGHT
    name_match = similarity(extracted.name, wine.name)
    score += name_match * NAME_WEIGHT
    if name_match > FIELD_MATCH_THRESHOLD:
        matched_fields.append("name")

    if extracted.producer and wine.producer:
        max_score += PRODUCER_WEIGHT
        producer_match = similarity(extracted.producer, wine.producer)
        score += producer_match * PRODUCER_WEIGHT
        if producer_match > FIELD_MATCH_THRESHOLD:
            matched_fields.append("producer")

    if extracted.vintage and wine.vintage:
        max_score += VINTAGE_WEIGHT
        if extracted.vintage == wine.vintage:
            score += VINTAGE_WEIGHT
            matched_fields.append("vintage")

    if wine.region:
        max_score += REGION_WEIGHT
        region = extract_region(extracted.description)
        if region and similarity(region, wine.region) > FIELD_MATCH_THRESHOLD:
            score += REGION_WEIGHT
            matched_fields.append("region")

    confidence = score / max_score if max_score > 0 else 0.0
    return confidence, matched_fields


def find_match(extracted: ExtractedWine, inventory: list[Wine]) -> tuple[Wine | None, WineMatch]:
    """Best inventory match for one entry; strictly better scores replace earlier ones."""
    best_wine: Wine | None = None
    best_confidence = 0.0
    best_fields: list[str] = []

    for wine in inventory:
        confidence, fields = score_match(extracted, wine)
        if confidence > best_confidence:
            best_wine, best_confidence, best_fields = wine, confidence, fields

    match = WineMatch(
        extracted_wine=extracted,
        matched_wine=WineResponse.model_validate(best_wine) if best_wine else None,
        confidence=best_confidence,
        match_type=match_type_for(best_confidence) if best_wine else "none",
        matched_fields=best_fields,
    )
    return best_wine, match


# --- scoring --------------------------------------------------------------


def taste_profile_score(wine: Wine, profile: TasteProfile) -> float:
    flavor = profile.preferences_for(type_key(wine.type))
    score = 0.0
    if wine.region in flavor.preferred_regions:
        score += 0.3
    if any(v in flavor.preferred_varietals for v in wine.varietal):
        score += 0.3
    if any(v in flavor.disliked_characteristics for v in wine.varietal):
        score -= 0.2
    if wine.region in profile.general_preferences.preferred_regions:
        score += 0.2
    return max(0.0, min(1.0, score))


def estimate_richness(wine: Wine) -> str:
    wine_type = type_key(wine.type)
    varietals = set(wine.varietal)
    if wine_type == "red":
        if varietals & {"Pinot Noir", "Gamay"}:
            return "light"
        if varietals & {"Cabernet Sauvignon", "Syrah", "Malbec"}:
            return "rich"
        return "medium"
    if wine_type == "white":
        if varietals & {"Sauvignon Blanc", "Pinot Grigio"}:
            return "light"
        if varietals & {"Chardonnay", "Viognier"}:
            return "medium"
        return "light"
    if wine_type == "sparkling":
        return "light"
    return "medium"


def richness_score(wine: Wine, richness: str) -> float:
    wine_level = RICHNESS_LEVELS.get(estimate_richness(wine), 2)
    meal_level = RICHNESS_LEVELS.get(richness, 2)
    return max(0.0, 1 - abs(wine_level - meal_level) * 0.3)


def food_pairing_score(wine: Wine, meal: MealContext) -> float:
    wine_type = type_key(wine.type)
    score = 0.5
    if meal.main_ingredient:
        score += INGREDIENT_SCORES.get(wine_type, {}).get(meal.main_ingredient.lower(), 0) * 0.3
    if meal.cooking_method:
        score += COOKING_METHOD_SCORES.get(wine_type, {}).get(meal.cooking_method.lower(), 0) * 0.2
    if meal.spice_level:
        score += SPICE_LEVEL_SCORES.get(wine_type, {}).get(meal.spice_level, 0) * 0.2
    if meal.richness:
        score += richness_score(wine, meal.richness) * 0.2
    return max(0.0, min(1.0, score))


def parse_price(price: str | None) -> float | None:
    """First number in a price label such as ``"$1,250"`` or ``"45 EUR"``."""
    match = PRICE_PATTERN.search(price or "")
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", "", 1))
    except ValueError:
        return None


def price_score(price: str, price_range: PriceRangeInput) -> float:
    """1 inside the range, linear falloff from the midpoint outside it."""
    value = parse_price(price)
    if value is None:
        return 0.5
    if price_range.min <= value <= price_range.max:
        return 1.0
    width = price_range.max - price_range.min
    if width <= 0:
        return 0.0
    midpoint = (price_range.min + price_range.max) / 2
    return max(0.0, 1 - abs(value - midpoint) / width)


def pairing_advice(wine_type: str, ingredient: str) -> str | None:
    return PAIRING_ADVICE.get(wine_type, {}).get(ingredient.lower())


def build_explanation(
    match: WineMatch,
    wine: Wine | None,
    profile: TasteProfile | None,
    context: RecommendationContext,
) -> str:
    entry = match.extracted_wine
    vintage = f" {entry.vintage}" if entry.vintage else ""
    parts: list[str] = []

    if wine is not None:
        producer = f"{entry.producer} " if entry.producer else ""
        parts.append(
            f"This {producer}{entry.name}{vintage} is a {type_key(wine.type)} wine from {wine.region}."
        )
    else:
        parts.append(f"This {entry.name}{vintage} appears to be a quality selection.")

    if profile is not None and wine is not None:
        flavor = (
            profile.red_wine_preferences
            if type_key(wine.type) == "red"
            else profile.white_wine_preferences
        )
        if wine.region in flavor.preferred_regions:
            parts.append(f"You've shown a preference for wines from {wine.region}.")
        preferred = [v for v in wine.varietal if v in flavor.preferred_varietals]
        if preferred:
            parts.append(f"The {' and '.join(preferred)} matches your taste preferences.")

    meal = context.meal
    if meal is not None and wine is not None:
        if meal.dish_name:
            parts.append(f"This {type_key(wine.type)} wine should pair well with {meal.dish_name}.")
        if meal.main_ingredient:
            advice = pairing_advice(type_key(wine.type), meal.main_ingredient)
            if advice:
                parts.append(advice)

    if entry.price and context.price_range:
        value = parse_price(entry.price)
        if value is not None and context.price_range.min <= value <= context.price_range.max:
            parts.append(f"At {entry.price}, it fits within your preferred price range.")

    return " ".join(parts)


def score_recommendation(
    match: WineMatch,
    wine: Wine | None,
    profile: TasteProfile | None,
    context: RecommendationContext,
) -> RestaurantRecommendation:
    reasoning: list[str] = []
    total = match.confidence * BASE_WEIGHT
    max_total = BASE_WEIGHT

    if match.confidence > 0.7:
        reasoning.append(f"High confidence match ({round(match.confidence * 100)}%)")

    taste = 0.0
    if profile is not None and wine is not None:
        taste = taste_profile_score(wine, profile)
        total += taste * TASTE_WEIGHT
        max_total += TASTE_WEIGHT
        if taste > 0.7:
            reasoning.append("Excellent match for your taste preferences")
        elif taste > 0.5:
            reasoning.append("Good match for your taste preferences")

    food = 0.0
    if context.meal is not None and wine is not None:
        food = food_pairing_score(wine, context.meal)
        total += food * FOOD_WEIGHT
        max_total += FOOD_WEIGHT
        dish = context.meal.dish_name or "your meal"
        if food > 0.7:
            reasoning.append(f"Excellent pairing with {dish}")
        elif food > 0.5:
            reasoning.append(f"Good pairing with {dish}")

    price = 0.0
    if context.price_range is not None and match.extracted_wine.price:
        price = price_score(match.extracted_wine.price, context.price_range)
        total += price * PRICE_WEIGHT
        max_total += PRICE_WEIGHT
        if price > 0.8:
            reasoning.append("Within your preferred price range")

    return RestaurantRecommendation(
        wine=match,
        score=total / max_total,
        reasoning=reasoning,
        food_pairing_score=food,
        price_score=price,
        taste_profile_score=taste,
        explanation=build_explanation(match, wine, profile, context),
    )


def rank_recommendations(
    matches: list[tuple[Wine | None, WineMatch]],
    profile: TasteProfile | None,
    context: RecommendationContext,
) -> list[RestaurantRecommendation]:
    """Scored recommendations above the floor, best first; ties keep input order."""
    scored = [score_recommendation(match, wine, profile, context) for wine, match in matches]
    kept = [rec for rec in scored if rec.score > MIN_RECOMMENDATION_SCORE]
    kept.sort(key=lambda rec: rec.score, reverse=True)
    return kept


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


async def analyze_wine_list(
    extracted: list[ExtractedWine],
    owner_id: PydanticObjectId,
    context: RecommendationContext | None = None,
) -> RestaurantAnalysis:
    """Match a wine list against the cellar and rank it for this user.

    Raises:
        RestaurantAnalysisError: If loading user data or scoring fails.
    """
    context = context or RecommendationContext()
    started = time.monotonic()
    try:
        profile = await TasteProfile.find_one(TasteProfile.owner_id == owner_id)
        inventory = await Wine.find(Wine.owner_id == owner_id).to_list()

        matches = [find_match(entry, inventory) for entry in extracted]
        recommendations = rank_recommendations(matches, profile, context)
    except Exception as e:
        logger.exception("Restaurant wine analysis failed (user=%s)", owner_id)
        raise RestaurantAnalysisError("Failed to analyze restaurant wine list") from e

    processed = [match for _, match in matches]
    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Analyzed %d restaurant wines in %dms (user=%s, recommendations=%d)",
        len(extracted),
        elapsed_ms,
        owner_id,
        len(recommendations),
    )
    return RestaurantAnalysis(
        total_wines=len(extracted),
        processed_wines=processed,
        recommendations=recommendations[:MAX_RECOMMENDATIONS],
        context=context,
        analysis_metadata=AnalysisMetadata(
            processing_time=elapsed_ms,
            matching_accuracy=_mean([m.confidence for m in processed]),
            recommendation_confidence=_mean([r.score for r in recommendations]),
        ),
    )
