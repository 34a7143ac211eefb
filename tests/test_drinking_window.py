"""Unit tests for drinking window maths and alert classification."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from pourtrait.models import DrinkingWindow, DrinkingWindowStatus, WineType
from pourtrait.services.alerts import alert_title, build_alerts, classify_wines
from pourtrait.services.drinking_window import (
    aging_potential,
    calculate_drinking_window,
    data_source,
    days_until_status_change,
    determine_status,
    format_window,
    refresh_status,
    urgency_indicator,
    urgency_score,
    window_is_ordered,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_window(
    earliest: datetime,
    peak_start: datetime,
    peak_end: datetime,
    latest: datetime,
    now: datetime = NOW,
) -> DrinkingWindow:
    return DrinkingWindow(
        earliest_date=earliest,
        peak_start_date=peak_start,
        peak_end_date=peak_end,
        latest_date=latest,
        current_status=determine_status(earliest, peak_start, peak_end, latest, now),
    )


def window_around_now(**offsets: int) -> DrinkingWindow:
    """Window whose dates sit the given number of days from NOW."""
    days = {"earliest": -400, "peak_start": -200, "peak_end": 200, "latest": 400}
    days.update(offsets)
    return make_window(
        NOW + timedelta(days=days["earliest"]),
        NOW + timedelta(days=days["peak_start"]),
        NOW + timedelta(days=days["peak_end"]),
        NOW + timedelta(days=days["latest"]),
    )


def fake_wine(name: str, window: DrinkingWindow, external_data: dict | None = None):
    return SimpleNamespace(
        id=f"id-{name}",
        name=name,
        vintage=2018,
        drinking_window=window,
        external_data=external_data or {},
    )


class TestCalculateDrinkingWindow:
    @pytest.mark.parametrize(
        "wine_type, expected",
        [
            (WineType.RED, (2020, 2020, 2023, 2026)),
            (WineType.WHITE, (2019, 2020, 2022, 2022)),
            (WineType.SPARKLING, (2020, 2020, 2022, 2024)),
            (WineType.DESSERT, (2021, 2022, 2028, 2033)),
            (WineType.FORTIFIED, (2019, 2024, 2032, 2038)),
            (WineType.ROSE, (2019, 2020, 2022, 2023)),
        ],
    )
    def test_years_by_type(self, wine_type, expected) -> None:
        window = calculate_drinking_window(2018, wine_type, "Somewhere", now=NOW)
        assert (
            window.earliest_date.year,
            window.peak_start_date.year,
            window.peak_end_date.year,
            window.latest_date.year,
        ) == expected

    def test_window_boundaries_fall_on_year_edges(self) -> None:
        window = calculate_drinking_window(2018, WineType.RED, now=NOW)
        assert (window.earliest_date.month, window.earliest_date.day) == (1, 1)
        assert (window.peak_start_date.month, window.peak_start_date.day) == (1, 1)
        assert (window.peak_end_date.month, window.peak_end_date.day) == (12, 31)
        assert (window.latest_date.month, window.latest_date.day) == (12, 31)
        assert window.latest_date.tzinfo is not None

    def test_premium_region_match_is_case_insensitive(self) -> None:
        assert aging_potential(WineType.RED, "haut-médoc, BORDEAUX") == 11
        assert aging_potential(WineType.RED, "Languedoc") == 8

    def test_external_aging_potential_wins(self) -> None:
        assert aging_potential(WineType.WHITE, "Burgundy", {"agingPotential": 12}) == 12
        assert aging_potential(WineType.WHITE, None, {"agingPotential": True}) == 4

    def test_windows_are_always_ordered(self) -> None:
        for wine_type in WineType:
            for vintage in (1900, 1995, 2023):
                window = calculate_drinking_window(vintage, wine_type, "Mosel", now=NOW)
                assert window_is_ordered(window)


class TestDetermineStatus:
    @pytest.mark.parametrize(
        "offsets, expected",
        [
            ({"earliest": 10, "peak_start": 20}, DrinkingWindowStatus.TOO_YOUNG),
            ({"peak_start": 10}, DrinkingWindowStatus.READY),
            ({}, DrinkingWindowStatus.PEAK),
            ({"peak_end": -10}, DrinkingWindowStatus.DECLINING),
            ({"peak_end": -20, "latest": -10}, DrinkingWindowStatus.OVER_HILL),
        ],
    )
    def test_status_for_position(self, offsets, expected) -> None:
        assert window_around_now(**offsets).current_status == expected

    def test_boundaries_are_inclusive_at_peak_end_and_latest(self) -> None:
        at_peak_end = make_window(
            NOW - timedelta(days=3), NOW - timedelta(days=2), NOW, NOW + timedelta(days=1)
        )
        assert at_peak_end.current_status == DrinkingWindowStatus.PEAK

        at_latest = make_window(
            NOW - timedelta(days=3), NOW - timedelta(days=2), NOW - timedelta(days=1), NOW
        )
        assert at_latest.current_status == DrinkingWindowStatus.DECLINING

    def test_naive_dates_are_treated_as_utc(self) -> None:
        status = determine_status(
            datetime(2020, 1, 1),
            datetime(2021, 1, 1),
            datetime(2030, 12, 31),
            datetime(2031, 12, 31),
            NOW,
        )
        assert status == DrinkingWindowStatus.PEAK

    def test_refresh_status_keeps_dates(self) -> None:
        window = window_around_now()
        later = refresh_status(window, now=NOW + timedelta(days=300))
        assert later.current_status == DrinkingWindowStatus.DECLINING
        assert later.peak_start_date == window.peak_start_date


class TestUrgency:
    def test_past_latest_scores_100(self) -> None:
        window = window_around_now(peak_end=-20, latest=-10)
        assert urgency_score(window, NOW) == 100

    def test_peak_ending_soon(self) -> None:
        window = window_around_now(peak_end=10)
        assert urgency_score(window, NOW) == 80

    def test_peak_with_time_left(self) -> None:
        assert urgency_score(window_around_now(), NOW) == 50

    def test_ready_and_too_young(self) -> None:
        assert urgency_score(window_around_now(peak_start=10), NOW) == 40
        assert urgency_score(window_around_now(earliest=10, peak_start=20), NOW) == 10

    def test_declining_floor(self) -> None:
        near_end = window_around_now(peak_end=-10, latest=50)
        assert urgency_score(near_end, NOW) == 65
        far_end = window_around_now(peak_end=-10, latest=380)
        assert urgency_score(far_end, NOW) == 60

    @pytest.mark.parametrize(
        "score, level, label",
        [
            (100, "critical", "Drink Soon!"),
            (80, "critical", "Drink Soon!"),
            (65, "high", "High Priority"),
            (40, "medium", "Medium Priority"),
            (10, "low", "Low Priority"),
        ],
    )
    def test_indicator(self, score, level, label) -> None:
        indicator = urgency_indicator(score)
        assert (indicator.level, indicator.label) == (level, label)


class TestDescriptions:
    def test_format_window(self) -> None:
        window = calculate_drinking_window(2018, WineType.RED, now=NOW)
        assert format_window(window) == "Peak: 2020-2023"

        same_year = make_window(
            datetime(2019, 1, 1, tzinfo=timezone.utc),
            datetime(2022, 1, 1, tzinfo=timezone.utc),
            datetime(2022, 12, 31, tzinfo=timezone.utc),
            datetime(2023, 12, 31, tzinfo=timezone.utc),
        )
        assert format_window(same_year) == "Peak: 2022"

    def test_days_until_status_change(self) -> None:
        change = days_until_status_change(window_around_now(peak_start=10), NOW)
        assert change.days == 10
        assert change.next_status == DrinkingWindowStatus.PEAK
        assert change.message == "Enters peak window in 10 days"

        over = days_until_status_change(window_around_now(peak_end=-20, latest=-10), NOW)
        assert over.days is None
        assert over.message == "Past optimal drinking window"

    def test_data_source(self) -> None:
        window = window_around_now()
        assert data_source(fake_wine("a", window))["confidence"] == 0.6
        external = data_source(fake_wine("b", window, {"agingPotential": 10}))
        assert external == {"source": "External wine database", "confidence": 0.9, "external": True}


class TestAlerts:
    def test_classify_wines(self) -> None:
        entering = fake_wine("entering", window_around_now(peak_start=5))
        leaving = fake_wine("leaving", window_around_now(peak_end=10))
        over = fake_wine("over", window_around_now(peak_end=-20, latest=-10))
        settled = fake_wine("settled", window_around_now())

        buckets = classify_wines([entering, leaving, over, settled], NOW)

        assert [w.name for w in buckets["entering_peak"]] == ["entering"]
        assert [w.name for w in buckets["leaving_peak"]] == ["leaving"]
        assert [w.name for w in buckets["over_hill"]] == ["over"]

    def test_build_alerts_sorted_by_urgency(self) -> None:
        wines = [
            fake_wine("entering", window_around_now(peak_start=5)),
            fake_wine("leaving", window_around_now(peak_end=10)),
            fake_wine("over", window_around_now(peak_end=-20, latest=-10)),
        ]

        alerts = build_alerts(wines, NOW, limit=10)

        assert [a.urgency for a in alerts] == ["critical", "critical", "medium"]
        assert alerts[-1].alert_type == "entering_peak"
        assert alerts[-1].days_until == 5
        assert "will enter its peak drinking window in 5 days" in alerts[-1].message
        assert alerts[0].model_dump(by_alias=True)["wineName"] in {"leaving", "over"}

    def test_build_alerts_respects_limit(self) -> None:
        wines = [
            fake_wine(f"over-{i}", window_around_now(peak_end=-20, latest=-10))
            for i in range(5)
        ]
        assert len(build_alerts(wines, NOW, limit=3)) == 3

    def test_alert_titles(self) -> None:
        assert alert_title("leaving_peak") == "Wine Leaving Peak Window"
        assert alert_title("something_else") == "Drinking Window Alert"
