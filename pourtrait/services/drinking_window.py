"""Drinking window calculation and urgency scoring.

A window is four dates derived from vintage, wine type and region:
earliest, peak start, peak end and latest. The status of a wine is where
"now" falls between those dates. All datetimes are aware UTC.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pourtrait.models._common import as_utc, utc_now
from pourtrait.models.wine import DrinkingWindow, DrinkingWindowStatus, Wine

# Years of aging potential by wine type
AGING_POTENTIAL_BY_TYPE = {
    "red": 8,
    "white": 4,
    "sparkling": 6,
    "dessert": 15,
    "fortified": 20,
}
DEFAULT_AGING_POTENTIAL = 5

# Years after vintage before a wine is drinkable
MIN_AGING_BY_TYPE = {
    "red": 2,
    "white": 1,
    "sparkling": 2,
    "dessert": 3,
    "fortified": 1,
}
DEFAULT_MIN_AGING = 1

PREMIUM_REGIONS = (
    "Bordeaux",
    "Burgundy",
    "Champagne",
    "Barolo",
    "Brunello di Montalcino",
    "Napa Valley",
    "Sonoma",
    "Willamette Valley",
    "Mosel",
    "Rheingau",
)
PREMIUM_REGION_BONUS = 3

STATUS_TEXT = {
    DrinkingWindowStatus.TOO_YOUNG: "Too Young",
    DrinkingWindowStatus.READY: "Ready to Drink",
    DrinkingWindowStatus.PEAK: "At Peak",
    DrinkingWindowStatus.DECLINING: "Declining",
    DrinkingWindowStatus.OVER_HILL: "Past Prime",
}


@dataclass(frozen=True)
class UrgencyIndicator:
    level: str
    label: str


@dataclass(frozen=True)
class StatusChange:
    days: int | None
    next_status: DrinkingWindowStatus | None
    message: str


def type_key(wine_type: Any) -> str:
    """Plain string for a WineType or raw type value."""
    return str(getattr(wine_type, "value", wine_type))


def aging_potential(
    wine_type: Any,
    region: str | None = None,
    external_data: dict[str, Any] | None = None,
) -> int:
    """Years of aging potential.

    An ``agingPotential`` supplied by external data wins over the
    type-based estimate and the premium region bonus.
    """
    external = (external_data or {}).get("agingPotential")
    if isinstance(external, (int, float)) and not isinstance(external, bool):
        return int(external)

    years = AGING_POTENTIAL_BY_TYPE.get(type_key(wine_type), DEFAULT_AGING_POTENTIAL)
    region_lower = (region or "").lower()
    if any(premium.lower() in region_lower for premium in PREMIUM_REGIONS):
        years += PREMIUM_REGION_BONUS
    return years


def determine_status(
    earliest: datetime,
    peak_start: datetime,
    peak_end: datetime,
    latest: datetime,
    now: datetime | None = None,
) -> DrinkingWindowStatus:
    now = now or utc_now()
    if now < as_utc(earliest):
        return DrinkingWindowStatus.TOO_YOUNG
    if now < as_utc(peak_start):
        return DrinkingWindowStatus.READY
    if now <= as_utc(peak_end):
        return DrinkingWindowStatus.PEAK
    if now <= as_utc(latest):
        return DrinkingWindowStatus.DECLINING
    return DrinkingWindowStatus.OVER_HILL


def calculate_drinking_window(
    vintage: int,
    wine_type: Any,
    region: str | None = None,
    external_data: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> DrinkingWindow:
    """Compute the drinking window for a wine's attributes."""
    potential = aging_potential(wine_type, region, external_data)
    min_aging = MIN_AGING_BY_TYPE.get(type_key(wine_type), DEFAULT_MIN_AGING)

    earliest = datetime(vintage + min_aging, 1, 1, tzinfo=timezone.utc)
    peak_start = datetime(vintage + max(math.floor(potential * 0.3), 2), 1, 1, tzinfo=timezone.utc)
    peak_end = datetime(vintage + max(math.floor(potential * 0.7), 4), 12, 31, tzinfo=timezone.utc)
    latest = datetime(vintage + potential, 12, 31, tzinfo=timezone.utc)

    return DrinkingWindow(
        earliest_date=earliest,
        peak_start_date=peak_start,
        peak_end_date=peak_end,
        latest_date=latest,
        current_status=determine_status(earliest, peak_start, peak_end, latest, now),
    )


def refresh_status(window: DrinkingWindow, now: datetime | None = None) -> DrinkingWindow:
    """Copy of ``window`` with its status recomputed for ``now``."""
    return window.model_copy(
        update={
            "current_status": determine_status(
                window.earliest_date,
                window.peak_start_date,
                window.peak_end_date,
                window.latest_date,
                now,
            )
        }
    )


def window_for_wine(wine: Wine, now: datetime | None = None) -> DrinkingWindow:
    return calculate_drinking_window(
        wine.vintage, wine.type, wine.region, wine.external_data, now
    )


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from ``start`` to ``end``, rounded up."""
    return math.ceil((as_utc(end) - as_utc(start)).total_seconds() / 86400)


def urgency_score(window: DrinkingWindow, now: datetime | None = None) -> float:
    """Score 0-100 of how soon a wine should be drunk.

    Uses the stored status, except that a wine past its latest date always
    scores 100.
    """
    now = now or utc_now()
    latest = as_utc(window.latest_date)

    if latest < now:
        return 100

    status = window.current_status
    if status == DrinkingWindowStatus.PEAK:
        days_to_peak_end = days_between(now, window.peak_end_date)
        if days_to_peak_end <= 30:
            return 90 - days_to_peak_end
        return 50
    if status == DrinkingWindowStatus.READY:
        return 40
    if status == DrinkingWindowStatus.DECLINING:
        days_to_latest = days_between(now, latest)
        return max(70 - days_to_latest / 10, 60)
    return 10


def urgency_indicator(score: float) -> UrgencyIndicator:
    if score >= 80:
        return UrgencyIndicator("critical", "Drink Soon!")
    if score >= 60:
        return UrgencyIndicator("high", "High Priority")
    if score >= 40:
        return UrgencyIndicator("medium", "Medium Priority")
    return UrgencyIndicator("low", "Low Priority")


def status_text(status: DrinkingWindowStatus) -> str:
    return STATUS_TEXT.get(status, "Unknown")


def format_window(window: DrinkingWindow) -> str:
    """Short label such as ``Peak: 2024-2027``."""
    start_year = window.peak_start_date.year
    end_year = window.peak_end_date.year
    if start_year == end_year:
        return f"Peak: {start_year}"
    return f"Peak: {start_year}-{end_year}"


def data_source(wine: Wine) -> dict[str, Any]:
    """Where a wine's window came from and how much to trust it."""
    if wine.external_data.get("agingPotential") is not None:
        return {"source": "External wine database", "confidence": 0.9, "external": True}
    return {"source": "Algorithmic calculation", "confidence": 0.6, "external": False}


def days_until_status_change(
    window: DrinkingWindow, now: datetime | None = None
) -> StatusChange:
    now = now or utc_now()
    status = window.current_status

    if status == DrinkingWindowStatus.TOO_YOUNG:
        days = days_between(now, window.earliest_date)
        return StatusChange(days, DrinkingWindowStatus.READY, f"Ready to drink in {days} days")
    if status == DrinkingWindowStatus.READY:
        days = days_between(now, window.peak_start_date)
        return StatusChange(days, DrinkingWindowStatus.PEAK, f"Enters peak window in {days} days")
    if status == DrinkingWindowStatus.PEAK:
        days = days_between(now, window.peak_end_date)
        return StatusChange(
            days, DrinkingWindowStatus.DECLINING, f"Peak window ends in {days} days"
        )
    if status == DrinkingWindowStatus.DECLINING:
        days = days_between(now, window.latest_date)
        return StatusChange(days, DrinkingWindowStatus.OVER_HILL, f"Past prime in {days} days")
    return StatusChange(None, None, "Past optimal drinking window")


def window_is_ordered(window: DrinkingWindow) -> bool:
    return (
        as_utc(window.earliest_date)
        <= as_utc(window.peak_start_date)
        <= as_utc(window.peak_end_date)
        <= as_utc(window.latest_date)
    )
