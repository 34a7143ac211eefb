"""Heuristic quality score for a mapped profile.

The free-text answers are scanned for a handful of signals (structured
reds, mineral whites, steak nights, ...). Each signal implies weighted
checks on the profile; the confidence is the passed share of the weight.
A low score is reported, never used to reject a profile.
"""

from typing import Any

from pourtrait.schemas.profile import Evaluation, EvaluationCheck, UserProfile

STRUCTURED_RED_TERMS = [
    "napa cab",
    "napa cabernet",
    "heitz",
    "cabernet",
    "northern rhone",
    "syrah",
    "cote rotie",
    "hermitage",
    "bordeaux",
    "merlot",
]
WHITE_TERMS = ["pinot gris", "elk cove", "sancerre", "sauvignon blanc"]
HIGH_ACID_DISLIKE_TERMS = ["overly acidic", "extremely acidic", "razor-sharp", "too crisp"]
STEAK_TERMS = ["steak", "grilled", "kabob"]
PIZZA_TERMS = ["pizza", "burger"]
CELEBRATION_TERMS = ["celebration", "special occasion", "date night"]
BRUNCH_ROSE_TERMS = ["lunch", "brunch", "rose", "rosé"]

COHERENCE_TOLERANCE = 0.2
FLAT_PALATE_VARIANCE = 0.0025


def normalize_text(free_text: dict[str, Any] | None) -> str:
    if not free_text:
        return ""
    return " ".join(str(v).lower() for v in free_text.values() if v)


def mentions(text: str, terms: list[str]) -> bool:
    return any(term in text for term in terms)


def qualitative(value: float) -> str:
    if value >= 0.75:
        return "high"
    if value >= 0.55:
        return "moderate"
    if value >= 0.35:
        return "medium"
    return "low"


def _within(a: float | None, b: float | None) -> bool:
    return a is not None and b is not None and abs(a - b) <= COHERENCE_TOLERANCE


def _variance(values: list[float]) -> float:
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def evaluate_profile(
    profile: UserProfile,
    free_text: dict[str, Any] | None = None,
    experience: str | None = None,
) -> Evaluation:
    text = normalize_text(free_text)
    palate = profile.stable_palate
    levers = profile.style_levers
    checks: list[EvaluationCheck] = []

    def check(id: str, ok: bool, weight: float, message: str, expected: Any = None, actual: Any = None) -> None:
        checks.append(
            EvaluationCheck(id=id, ok=ok, weight=weight, message=message, expected=expected, actual=actual)
        )

    likes_structured_reds = mentions(text, STRUCTURED_RED_TERMS)
    white_signals = mentions(text, WHITE_TERMS)
    dislikes_high_acid = mentions(text, HIGH_ACID_DISLIKE_TERMS)
    steak = mentions(text, STEAK_TERMS)
    pizza = mentions(text, PIZZA_TERMS)
    celebration = mentions(text, CELEBRATION_TERMS)
    brunch_rose = mentions(text, BRUNCH_ROSE_TERMS)

    if likes_structured_reds:
        check("reds-tannin", palate.tannin >= 0.7, 2.0,
              "Structured reds should show higher tannin", ">=0.7", palate.tannin)
        check("reds-body", palate.body >= 0.7, 2.0,
              "Structured reds should show fuller body", ">=0.7", palate.body)
        check("reds-oak", 0.55 <= levers.oak <= 0.75, 1.2,
              "Moderate oak expected for Napa/Bdx styles", "0.55–0.75", levers.oak)

    if white_signals:
        check("white-minerality", levers.minerality >= 0.55, 1.0,
              "Sancerre/Pinot Gris imply mineral whites", ">=0.55", levers.minerality)
        check("white-sweetness", palate.sweetness <= 0.35, 0.8,
              "Balanced/dry whites preferred", "<=0.35", palate.sweetness)

    if dislikes_high_acid:
        check("acidity-cap", palate.acidity <= 0.65, 1.2,
              "User dislikes overly acidic wines", "<=0.65", palate.acidity)
    else:
        core = [palate.sweetness, palate.acidity, palate.tannin, palate.bitterness, palate.body]
        check("balance-nonflat", _variance(core) > FLAT_PALATE_VARIANCE, 0.6,
              "Palate should not be flat at 0.5")

    # Insertion-ordered set of occasions
    occasions = list(dict.fromkeys(entry.occasion.value for entry in profile.context_weights))
    if steak:
        check("ctx-steak", "steak_night" in occasions, 0.7,
              "Expect steak night context", "steak_night in contexts", occasions[:5])
    if pizza:
        check("ctx-pizza", "pizza_pasta" in occasions, 0.6,
              "Expect pizza/pasta context", "pizza_pasta in contexts", occasions[:5])
    if celebration:
        wanted = ("celebration_toast", "special_occasion", "date_night")
        check("ctx-celebration", any(o in occasions for o in wanted), 0.5,
              "Expect celebration/date-night context", "|".join(wanted), occasions[:7])
    if brunch_rose:
        wanted = ("aperitif", "everyday", "lunch_rose", "eating_out")
        check("ctx-aperitif", any(o in occasions for o in wanted), 0.4,
              "Expect aperitif/brunch/lighter context", "|".join(wanted), occasions[:7])

    maps = profile.flavor_maps
    red = maps.red.model_dump(exclude_none=True) if maps.red else {}
    white = maps.white.model_dump(exclude_none=True) if maps.white else {}
    sparkling = maps.sparkling.model_dump(exclude_none=True) if maps.sparkling else {}

    if red:
        check("coherence-red-tannin", _within(red.get("tannin"), palate.tannin), 0.7,
              "Red map tannin should reflect stable palate", palate.tannin, red.get("tannin"))
        check("coherence-red-acidity", _within(red.get("acidity"), palate.acidity), 0.5,
              "Red map acidity should reflect stable palate", palate.acidity, red.get("acidity"))
        check("coherence-red-body", _within(red.get("body"), palate.body), 0.5,
              "Red map body should reflect stable palate", palate.body, red.get("body"))
        check("coherence-red-oak", _within(red.get("oak"), levers.oak), 0.5,
              "Red map oak should reflect style levers", levers.oak, red.get("oak"))

    if white:
        white_oak_target = min(levers.oak, 0.5)
        check("coherence-white-acidity", _within(white.get("acidity"), palate.acidity), 0.5,
              "White map acidity should reflect stable palate", palate.acidity, white.get("acidity"))
        check("coherence-white-body", _within(white.get("body"), palate.body), 0.4,
              "White map body should reflect stable palate", palate.body, white.get("body"))
        check("coherence-white-oak",
              white.get("oak") is None or _within(white["oak"], white_oak_target), 0.4,
              "Whites usually show lower oak in this preference set",
              f"<={white_oak_target:.2f}", white.get("oak"))

    if sparkling:
        check("coherence-sparkling-bubbles",
              _within(sparkling.get("bubble_intensity"), palate.sparkle_intensity), 0.3,
              "Sparkling bubble intensity should reflect palate",
              palate.sparkle_intensity, sparkling.get("bubble_intensity"))

    total_weight = sum(c.weight for c in checks) or 1
    passed_weight = sum(c.weight for c in checks if c.ok)
    confidence = max(0.0, min(1.0, passed_weight / total_weight))

    if likes_structured_reds:
        reds_line = (
            f"Your reds lean structured and savory (tannin {qualitative(palate.tannin)}, "
            f"body {qualitative(palate.body)}, oak {qualitative(levers.oak)})."
        )
    else:
        reds_line = "Your reds sit around a balanced midpoint with easy drinking structure."

    if white_signals:
        whites_line = (
            "For whites you favor mineral, balanced styles like Sancerre/Pinot Gris "
            f"(sweetness {qualitative(palate.sweetness)}, acidity {qualitative(palate.acidity)})."
        )
    else:
        whites_line = "Whites look balanced without extremes of sugar or acid."

    if steak:
        tip_line = (
            "For steak or grilled nights, try a Napa Cab or N. Rhône Syrah; "
            "for pizza/burger, a robust Pinot or Rioja works well."
        )
    else:
        tip_line = "Pair richer reds with protein and keep whites crisp‑mineral for seafood and salads."

    return Evaluation(
        confidence=confidence,
        checks=checks,
        commentary=f"{reds_line} {whites_line} {tip_line}",
    )
