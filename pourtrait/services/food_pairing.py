"""Rule-based food pairing and contextual recommendations over the cellar."""

import logging
from dataclasses import dataclass, field

from beanie import PydanticObjectId

from pourtrait.models.taste_profile import FlavorProfile, TasteProfile
from pourtrait.models.wine import Wine
from pourtrait.schemas.recommendation import (
    ContextualFilter,
    FoodPairingRequest,
    FoodPairingResponse,
    PairingRecommendation,
    RecommendationContext,
    ServingRecommendations,
    ServingTips,
    Temperature,
)
from pourtrait.schemas.wine import WineResponse
from pourtrait.services.drinking_window import type_key

logger = logging.getLogger(__name__)

TOP_PAIRINGS = 3
WINES_PER_RULE = 2


@dataclass(frozen=True)
class PairingRule:
    food_category: str
    wine_types: tuple[str, ...]
    reasoning: str
    confidence: float
    examples: tuple[str, ...]


CLASSIC_PAIRING_RULES = [
    PairingRule(
        "red_meat", ("red",),
        "Tannins in red wine complement the proteins and fats in red meat", 0.9,
        ("Cabernet Sauvignon with steak", "Malbec with lamb", "Syrah with beef stew"),
    ),
    PairingRule(
        "white_fish", ("white", "sparkling"),
        "Light wines preserve the delicate flavors of white fish", 0.85,
        ("Sauvignon Blanc with sole", "Champagne with oysters", "Pinot Grigio with halibut"),
    ),
    PairingRule(
        "salmon", ("white", "red", "rosé"),
        "Salmon's richness can handle both light reds and full-bodied whites", 0.8,
        ("Pinot Noir with grilled salmon", "Chardonnay with cedar plank salmon", "Rosé with salmon tartare"),
    ),
    PairingRule(
        "poultry", ("white", "red"),
        "Versatile protein that pairs with both light reds and medium-bodied whites", 0.8,
        ("Chardonnay with roasted chicken", "Pinot Noir with duck", "Riesling with turkey"),
    ),
    PairingRule(
        "pork", ("white", "red", "rosé"),
        "Pork's mild flavor works with a wide range of wine styles", 0.75,
        ("Riesling with pork tenderloin", "Côtes du Rhône with pork chops", "Rosé with pork belly"),
    ),
    PairingRule(
        "cheese", ("red", "white", "sparkling"),
        "Cheese pairings depend on texture and intensity of the cheese", 0.8,
        ("Cabernet with aged cheddar", "Sancerre with goat cheese", "Port with blue cheese"),
    ),
    PairingRule(
        "spicy_food", ("white", "rosé", "sparkling"),
        "Off-dry wines and bubbles help cool spicy heat", 0.85,
        ("Riesling with Thai curry", "Gewürztraminer with Indian food", "Prosecco with spicy appetizers"),
    ),
    PairingRule(
        "dessert", ("dessert", "sparkling"),
        "Sweet wines should be as sweet or sweeter than the dessert", 0.9,
        ("Port with chocolate", "Moscato with fruit tarts", "Ice wine with crème brûlée"),
    ),
]

REGIONAL_PAIRING_RULES = {
    "italian": [
        PairingRule(
            "pasta_tomato", ("red",),
            "Italian reds complement tomato-based sauces perfectly", 0.9,
            ("Chianti with marinara", "Sangiovese with arrabbiata", "Barbera with puttanesca"),
        ),
        PairingRule(
            "pasta_cream", ("white",),
            "Crisp whites cut through rich cream sauces", 0.85,
            ("Pinot Grigio with alfredo", "Soave with carbonara", "Vermentino with cacio e pepe"),
        ),
    ],
    "french": [
        PairingRule(
            "coq_au_vin", ("red",),
            "Classic French pairing - cook with the wine you drink", 0.95,
            ("Burgundy with coq au vin", "Côtes du Rhône with beef bourguignon"),
        ),
    ],
    "asian": [
        PairingRule(
            "sushi", ("white", "sparkling"),
            "Clean, crisp wines complement delicate fish flavors", 0.8,
            ("Sake (rice wine)", "Chablis with sashimi", "Champagne with uni"),
        ),
    ],
}

FOOD_CATEGORIES = {
    "red_meat": ["beef", "steak", "lamb", "venison", "bison"],
    "white_fish": ["sole", "halibut", "cod", "sea bass", "flounder"],
    "salmon": ["salmon", "trout", "arctic char"],
    "poultry": ["chicken", "turkey", "duck", "goose", "quail"],
    "pork": ["pork", "ham", "bacon", "prosciutto"],
    "cheese": ["cheese", "brie", "cheddar", "goat cheese", "blue cheese"],
    "pasta": ["pasta", "spaghetti", "linguine", "penne", "ravioli"],
    "spicy_food": ["curry", "chili", "jalapeño", "sriracha", "wasabi"],
    "dessert": ["chocolate", "cake", "tart", "ice cream", "crème brûlée"],
}

COOKING_IMPACTS = {
    "grilled": {"intensity": "high", "flavors": ["smoky", "charred"], "wine_style": "bold"},
    "roasted": {"intensity": "medium-high", "flavors": ["caramelized", "concentrated"], "wine_style": "medium-full"},
    "fried": {"intensity": "high", "flavors": ["rich", "fatty"], "wine_style": "crisp-acidic"},
    "steamed": {"intensity": "low", "flavors": ["clean", "delicate"], "wine_style": "light-fresh"},
    "braised": {"intensity": "medium", "flavors": ["tender", "sauce-integrated"], "wine_style": "medium"},
    "raw": {"intensity": "low", "flavors": ["pure", "delicate"], "wine_style": "crisp-mineral"},
}
DEFAULT_COOKING_IMPACT = {"intensity": "medium", "flavors": ["balanced"], "wine_style": "versatile"}

SPICE_IMPACT = {"none": 0, "mild": 1, "medium": 2, "hot": 3}
RICHNESS_IMPACT = {"light": 0, "medium": 1, "rich": 2}
INTENSITY_LEVELS = {"light": 1, "medium": 2, "intense": 3}

INGREDIENT_FLAVORS = {
    "tomato": ["acidic", "umami"],
    "cream": ["rich", "fatty"],
    "lemon": ["acidic", "citrus"],
    "garlic": ["pungent", "savory"],
    "herbs": ["aromatic", "fresh"],
    "mushroom": ["earthy", "umami"],
    "cheese": ["salty", "umami", "fatty"],
}
CUISINE_FLAVORS = {
    "italian": ["herbs", "tomato", "olive oil"],
    "french": ["butter", "cream", "wine"],
    "asian": ["soy", "ginger", "sesame"],
    "indian": ["spices", "heat", "complex"],
    "mexican": ["chili", "lime", "cilantro"],
}

URGENCY_BONUS = {"too_young": 0.1, "ready": 0.6, "peak": 0.9, "declining": 0.8, "over_hill": 0.3}

BOLD_RED_REGIONS = ["Napa Valley", "Barossa Valley", "Mendoza", "Tuscany"]
BOLD_RED_VARIETALS = {"Cabernet Sauvignon", "Syrah", "Malbec", "Nebbiolo"}
FULLER_WHITE_VARIETALS = {"Chardonnay", "Viognier", "Gewürztraminer"}

GLASS_TYPES = {
    "red": "Bordeaux glass",
    "white": "White wine glass",
    "sparkling": "Flute or tulip glass",
    "rosé": "White wine glass",
    "dessert": "Dessert wine glass",
    "fortified": "Port glass",
}

PREPARATION_TIPS = [
    "Taste the wine first to understand its characteristics",
    "Take small sips between bites to cleanse your palate",
    "Notice how the wine changes the perception of the food flavors",
]


@dataclass
class FoodAnalysis:
    category: str
    intensity: str
    cooking_impact: dict
    flavor_components: list[str] = field(default_factory=list)
    cuisine: str | None = None
    spice_level: str = "none"
    richness: str = "medium"


# --- food analysis ----------------------------------------------------------


def determine_food_category(food: str) -> str:
    for category, keywords in FOOD_CATEGORIES.items():
        if any(keyword in food for keyword in keywords):
            return category
    return "general"


def analyze_cooking_method(method: str | None, food: str) -> dict:
    """Impact of the cooking method, inferred from the description when absent."""
    if not method:
        if "grilled" in food or "bbq" in food:
            method = "grilled"
        elif "roasted" in food or "baked" in food:
            method = "roasted"
        elif "fried" in food:
            method = "fried"
        elif "steamed" in food:
            method = "steamed"
        else:
            method = "unknown"
    return COOKING_IMPACTS.get(method.lower(), DEFAULT_COOKING_IMPACT)


def determine_flavor_intensity(food: str, spice_level: str | None, richness: str | None) -> str:
    intensity = 1
    intensity += SPICE_IMPACT.get(spice_level or "", 0)
    intensity += RICHNESS_IMPACT.get(richness or "", 1)
    if "truffle" in food or "foie gras" in food:
        intensity += 2
    if "delicate" in food or "light" in food:
        intensity -= 1

    if intensity <= 2:
        return "light"
    if intensity <= 4:
        return "medium"
    return "intense"


def identify_flavor_components(food: str, cuisine: str | None) -> list[str]:
    components: list[str] = []
    for ingredient, flavors in INGREDIENT_FLAVORS.items():
        if ingredient in food:
            components.extend(flavors)
    if cuisine:
        components.extend(CUISINE_FLAVORS.get(cuisine.lower(), []))
    return list(dict.fromkeys(components))


def analyze_food(request: FoodPairingRequest) -> FoodAnalysis:
    food = request.food_description.lower()
    return FoodAnalysis(
        category=determine_food_category(food),
        intensity=determine_flavor_intensity(food, request.spice_level, request.richness),
        cooking_impact=analyze_cooking_method(request.cooking_method, food),
        flavor_components=identify_flavor_components(food, request.cuisine),
        cuisine=request.cuisine.lower() if request.cuisine else None,
        spice_level=request.spice_level or "none",
        richness=request.richness or "medium",
    )


# --- filtering and scoring ----------------------------------------------------


def context_to_filter(context: RecommendationContext | None) -> ContextualFilter:
    context = context or RecommendationContext()
    return ContextualFilter(
        price_range=context.price_range,
        availability="inventory_only",
        urgency=context.urgency,
        occasion=context.occasion,
        companions=len(context.companions) if context.companions else None,
    )


def apply_filters(wines: list[Wine], filters: ContextualFilter) -> list[Wine]:
    """In-stock wines narrowed by price, type and drinking-window urgency.

    Wines without a purchase price pass the price filter.
    """
    filtered = [wine for wine in wines if wine.quantity > 0]

    if filters.price_range is not None:
        low, high = filters.price_range.min, filters.price_range.max
        filtered = [
            wine for wine in filtered
            if not wine.purchase_price or low <= wine.purchase_price <= high
        ]

    if filters.wine_type:
        filtered = [wine for wine in filtered if type_key(wine.type) in filters.wine_type]

    if filters.urgency == "high":
        filtered = [
            wine for wine in filtered
            if type_key(wine.drinking_window.current_status) in ("peak", "declining")
        ]
    elif filters.urgency == "low":
        filtered = [
            wine for wine in filtered
            if type_key(wine.drinking_window.current_status) in ("ready", "too_young")
        ]
    return filtered


def flavor_profile_for(wine: Wine, profile: TasteProfile | None) -> FlavorProfile:
    if profile is None:
        return FlavorProfile()
    return profile.preferences_for(type_key(wine.type))


def urgency_bonus(wine: Wine) -> float:
    return URGENCY_BONUS.get(type_key(wine.drinking_window.current_status), 0.5)


def estimate_wine_intensity(wine: Wine) -> str:
    wine_type = type_key(wine.type)
    if wine_type == "red":
        if any(region in wine.region for region in BOLD_RED_REGIONS):
            return "intense"
        if BOLD_RED_VARIETALS & set(wine.varietal):
            return "intense"
        return "medium"
    if wine_type == "white":
        if FULLER_WHITE_VARIETALS & set(wine.varietal):
            return "medium"
        return "light"
    return "medium"


def intensity_match(wine: Wine, analysis: FoodAnalysis) -> float:
    difference = abs(
        INTENSITY_LEVELS[estimate_wine_intensity(wine)] - INTENSITY_LEVELS[analysis.intensity]
    )
    if difference == 0:
        return 1.0
    if difference == 1:
        return 0.7
    return 0.3


def pairing_score(
    wine: Wine, analysis: FoodAnalysis, rule: PairingRule, profile: TasteProfile | None
) -> float:
    flavor = flavor_profile_for(wine, profile)
    score = rule.confidence
    if wine.region in flavor.preferred_regions:
        score += 0.1
    if any(v in flavor.preferred_varietals for v in wine.varietal):
        score += 0.1
    score += urgency_bonus(wine) * 0.05
    score += intensity_match(wine, analysis) * 0.1
    return min(score, 1.0)


def occasion_score(wine: Wine, occasion: str) -> float:
    wine_type = type_key(wine.type)
    scores = {
        "romantic dinner": 0.8 if wine_type == "red" else 0.6,
        "celebration": 1.0 if wine_type == "sparkling" else 0.5,
        "casual dinner": 0.8,
        "business dinner": 0.9 if wine_type == "red" else 0.7,
        "holiday": 0.9 if wine_type in ("red", "sparkling") else 0.6,
    }
    return scores.get(occasion.lower(), 0.5)


def contextual_score(wine: Wine, filters: ContextualFilter, profile: TasteProfile | None) -> float:
    flavor = flavor_profile_for(wine, profile)
    score = 0.5
    if wine.region in flavor.preferred_regions:
        score += 0.2
    if any(v in flavor.preferred_varietals for v in wine.varietal):
        score += 0.2
    score += urgency_bonus(wine) * 0.1

    if filters.occasion:
        score += occasion_score(wine, filters.occasion) * 0.1

    if filters.price_range is not None and wine.purchase_price:
        width = filters.price_range.max - filters.price_range.min
        if width > 0:
            midpoint = filters.price_range.min + width / 2
            score += (1 - abs(wine.purchase_price - midpoint) / width) * 0.1

    return min(score, 1.0)


def overall_confidence(pairings: list[PairingRecommendation]) -> float:
    if not pairings:
        return 0
    return round(sum(p.confidence for p in pairings) / len(pairings), 2)


# --- text -------------------------------------------------------------------


def _category_label(category: str) -> str:
    return category.replace("_", " ", 1)


def pairing_explanation(wine: Wine, analysis: FoodAnalysis, rule: PairingRule) -> str:
    plural = len(wine.varietal) > 1
    return (
        f"This {wine.vintage} {wine.name} from {wine.region} {rule.reasoning.lower()}. "
        f"The {' and '.join(wine.varietal)} grape{'s' if plural else ''} "
        f"provide{'' if plural else 's'} the perfect complement to your "
        f"{_category_label(analysis.category)}."
    )


def educational_context(rule: PairingRule) -> str:
    return (
        f"This pairing follows the classic principle that {rule.reasoning.lower()}. "
        f"{rule.examples[0]} is a traditional example of this pairing style."
    )


def serving_recommendations(wine: Wine, analysis: FoodAnalysis) -> ServingRecommendations:
    wine_type = type_key(wine.type)
    celsius = 16 if wine_type == "red" else 10 if wine_type == "white" else 6
    return ServingRecommendations(
        temperature=Temperature(celsius=celsius, fahrenheit=round(celsius * 9 / 5 + 32)),
        decanting_time=60 if wine_type == "red" and wine.vintage < 2015 else None,
        glass_type=GLASS_TYPES.get(wine_type, "Universal wine glass"),
        serving_size="5 oz (150ml)",
        optimal_timing=(
            "Serve 15 minutes before the meal"
            if analysis.cooking_impact["intensity"] == "high"
            else "Serve with the meal"
        ),
    )


def educational_notes(analysis: FoodAnalysis, pairings: list[PairingRecommendation]) -> str:
    if not pairings:
        return "No suitable pairings found in your inventory."

    notes = "Food and wine pairing works on the principle of complementing or contrasting flavors. "
    if analysis.intensity == "intense":
        notes += (
            "Since your dish has intense flavors, we've selected wines that can stand up "
            "to them without being overwhelmed. "
        )
    elif analysis.intensity == "light":
        notes += (
            "Your delicate dish pairs best with lighter wines that won't overpower "
            "the subtle flavors. "
        )

    if pairings[0].pairing_type == "classic":
        notes += "This is a classic pairing that has been enjoyed for generations."
    elif pairings[0].pairing_type == "adventurous":
        notes += "This is a more adventurous pairing that creates interesting flavor contrasts."
    return notes


def serving_tips(pairing: PairingRecommendation | None, analysis: FoodAnalysis) -> ServingTips:
    tips = ServingTips(preparation=list(PREPARATION_TIPS))
    if pairing is not None and pairing.serving_recommendations is not None:
        serving = pairing.serving_recommendations
        tips.wine_temperature = (
            f"Serve at {serving.temperature.celsius}°C ({serving.temperature.fahrenheit}°F)"
        )
        tips.glassware = f"Use a {serving.glass_type.lower()}"
    if analysis.cooking_impact["intensity"] == "high":
        tips.timing = "Open the wine 30 minutes before serving to let it breathe"
    return tips


def _criteria(filters: ContextualFilter) -> list[str]:
    return [key.replace("_", " ") for key in filters.model_dump(exclude_none=True)]


def contextual_reasoning(wine: Wine, filters: ContextualFilter) -> str:
    reasoning = f"This {wine.name} from {wine.producer}"
    if filters.occasion:
        reasoning += f" is well-suited for {filters.occasion}"
    if filters.urgency == "high" and type_key(wine.drinking_window.current_status) == "peak":
        reasoning += " and is at its optimal drinking window"
    if filters.price_range is not None and wine.purchase_price:
        reasoning += " and fits within your budget"
    return reasoning + "."


def contextual_education(filters: ContextualFilter) -> str:
    education = "When selecting wines for specific contexts, consider: "
    if filters.occasion:
        education += f"the formality and mood of {filters.occasion}, "
    if filters.price_range is not None:
        education += "your budget constraints, "
    if filters.urgency == "high":
        education += "wines that need to be consumed soon, "
    return education + "and your personal taste preferences."


def contextual_serving_tips(filters: ContextualFilter) -> ServingTips:
    tips = ServingTips()
    if filters.companions and filters.companions > 4:
        tips.preparation = ["Consider opening multiple bottles for larger groups"]
    if filters.occasion and "celebration" in filters.occasion:
        tips.timing = "Chill sparkling wines extra cold for celebrations"
    return tips


# --- entry points -------------------------------------------------------------


def classic_pairings(
    analysis: FoodAnalysis, wines: list[Wine], profile: TasteProfile | None
) -> list[PairingRecommendation]:
    rules = [rule for rule in CLASSIC_PAIRING_RULES if rule.food_category == analysis.category]
    if analysis.cuisine:
        rules.extend(REGIONAL_PAIRING_RULES.get(analysis.cuisine, []))

    pairings: list[PairingRecommendation] = []
    for rule in rules:
        matching = [wine for wine in wines if type_key(wine.type) in rule.wine_types]
        for wine in matching[:WINES_PER_RULE]:
            pairings.append(
                PairingRecommendation(
                    type="pairing",
                    wine_id=str(wine.id),
                    wine=WineResponse.model_validate(wine),
                    context={"foodPairing": analysis.category},
                    reasoning=rule.reasoning,
                    confidence=rule.confidence,
                    pairing_score=pairing_score(wine, analysis, rule, profile),
                    pairing_type="classic",
                    pairing_explanation=pairing_explanation(wine, analysis, rule),
                    educational_context=educational_context(rule),
                    serving_recommendations=serving_recommendations(wine, analysis),
                )
            )
    return pairings


def rank_pairings(pairings: list[PairingRecommendation]) -> list[PairingRecommendation]:
    return sorted(pairings, key=lambda p: (p.pairing_score, p.confidence), reverse=True)


def build_food_pairings(
    request: FoodPairingRequest, wines: list[Wine], profile: TasteProfile | None
) -> FoodPairingResponse:
    analysis = analyze_food(request)
    candidates = apply_filters(wines, context_to_filter(request.context))
    ranked = rank_pairings(classic_pairings(analysis, candidates, profile))

    if ranked:
        top = ranked[0]
        reasoning = (
            f"For your {_category_label(analysis.category)}, I recommend {top.pairing_explanation} "
            f"This pairing works because {top.reasoning.lower()}."
        )
    else:
        reasoning = "No suitable pairings found in your inventory."

    return FoodPairingResponse(
        pairings=ranked[:TOP_PAIRINGS],
        reasoning=reasoning,
        confidence=overall_confidence(ranked),
        educational_notes=educational_notes(analysis, ranked),
        alternative_pairings=ranked[TOP_PAIRINGS : TOP_PAIRINGS * 2],
        serving_tips=serving_tips(ranked[0] if ranked else None, analysis),
    )


def build_contextual_recommendations(
    filters: ContextualFilter, wines: list[Wine], profile: TasteProfile | None
) -> FoodPairingResponse:
    candidates = apply_filters(wines, filters)
    if not candidates:
        return FoodPairingResponse(
            pairings=[],
            reasoning="No wines in your inventory match the specified criteria.",
            confidence=0,
            educational_notes=(
                "Consider adjusting your filters or adding wines to your inventory "
                "that match your preferences."
            ),
        )

    criteria = _criteria(filters)
    context = filters.model_dump(by_alias=True, exclude_none=True)
    pairings = []
    for wine in candidates:
        score = contextual_score(wine, filters, profile)
        pairings.append(
            PairingRecommendation(
                type="inventory",
                wine_id=str(wine.id),
                wine=WineResponse.model_validate(wine),
                context=context,
                reasoning=contextual_reasoning(wine, filters),
                confidence=score,
                pairing_score=score,
                pairing_type="complementary",
                pairing_explanation=f"Selected based on your specified criteria: {', '.join(criteria)}.",
            )
        )
    pairings.sort(key=lambda p: p.pairing_score, reverse=True)

    return FoodPairingResponse(
        pairings=pairings[:TOP_PAIRINGS],
        reasoning=(
            f"Based on your criteria ({', '.join(criteria)}), this wine offers the best "
            "combination of personal preference alignment and contextual appropriateness."
        ),
        confidence=overall_confidence(pairings),
        educational_notes=contextual_education(filters),
        serving_tips=contextual_serving_tips(filters),
    )


async def _load_user_data(owner_id: PydanticObjectId) -> tuple[list[Wine], TasteProfile | None]:
    wines = await Wine.find(Wine.owner_id == owner_id).sort(-Wine.created_at).to_list()
    profile = await TasteProfile.find_one(TasteProfile.owner_id == owner_id)
    return wines, profile


async def generate_food_pairings(
    owner_id: PydanticObjectId, request: FoodPairingRequest
) -> FoodPairingResponse:
    wines, profile = await _load_user_data(owner_id)
    response = build_food_pairings(request, wines, profile)
    logger.info(
        "Food pairing for %r: %d pairings (user=%s)",
        request.food_description,
        len(response.pairings),
        owner_id,
    )
    return response


async def generate_contextual_recommendations(
    owner_id: PydanticObjectId, filters: ContextualFilter
) -> FoodPairingResponse:
    wines, profile = await _load_user_data(owner_id)
    return build_contextual_recommendations(filters, wines, profile)
