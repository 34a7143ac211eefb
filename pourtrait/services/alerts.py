"""Drinking-window alerts: detection, in-app notifications and email digests."""

import logging
from datetime import datetime, timedelta
from typing import Any

from pourtrait.config import settings
from pourtrait.models._common import as_utc, utc_now
from pourtrait.models.notification import Notification, NotificationType
from pourtrait.models.user import User
from pourtrait.models.wine import Wine
from pourtrait.schemas.notification import DrinkingWindowAlert
from pourtrait.services.analytics import posthog_service
from pourtrait.services.drinking_window import days_between, urgency_score
from pourtrait.services.email import get_email_service
from pourtrait.services.preferences import get_preferences, in_quiet_hours
from pourtrait.services.scheduler import (
    drinking_window_frequency,
    schedule_drinking_window_alerts,
)

logger = logging.getLogger(__name__)

ENTERING_PEAK_DAYS = 7
LEAVING_PEAK_DAYS = 30

URGENCY_WEIGHT = {"critical": 4, "high": 3, "medium": 2, "low": 1}

ALERT_TITLES = {
    "entering_peak": "Wine Entering Peak Window",
    "leaving_peak": "Wine Leaving Peak Window",
    "over_hill": "Wine Past Optimal Window",
    "ready_to_drink": "Wine Ready to Drink",
}
DEFAULT_ALERT_TITLE = "Drinking Window Alert"


def alert_title(alert_type: str) -> str:
    return ALERT_TITLES.get(alert_type, DEFAULT_ALERT_TITLE)


def classify_wines(
    wines: list[Wine], now: datetime | None = None
) -> dict[str, list[Wine]]:
    """Bucket wines into entering peak, leaving peak and over the hill.

    A wine may land in more than one bucket.
    """
    now = now or utc_now()
    entering_limit = now + timedelta(days=ENTERING_PEAK_DAYS)
    leaving_limit = now + timedelta(days=LEAVING_PEAK_DAYS)

    buckets: dict[str, list[Wine]] = {"entering_peak": [], "leaving_peak": [], "over_hill": []}
    for wine in wines:
        window = wine.drinking_window
        peak_start = as_utc(window.peak_start_date)
        peak_end = as_utc(window.peak_end_date)

        if now < peak_start <= entering_limit:
            buckets["entering_peak"].append(wine)
        if now < peak_end <= leaving_limit:
            buckets["leaving_peak"].append(wine)
        if as_utc(window.latest_date) < now:
            buckets["over_hill"].append(wine)
    return buckets


def build_alerts(
    wines: list[Wine],
    now: datetime | None = None,
    limit: int | None = None,
) -> list[DrinkingWindowAlert]:
    """Alerts for a set of wines, most urgent first, capped at ``limit``."""
    now = now or utc_now()
    limit = settings.max_alerts if limit is None else limit
    buckets = classify_wines(wines, now)
    alerts: list[DrinkingWindowAlert] = []

    for wine in buckets["entering_peak"]:
        days = days_between(now, wine.drinking_window.peak_start_date)
        score = urgency_score(wine.drinking_window, now)
        alerts.append(
            DrinkingWindowAlert(
                wine_id=str(wine.id),
                wine_name=wine.name,
                vintage=wine.vintage,
                alert_type="entering_peak",
                message=(
                    f"{wine.name} ({wine.vintage}) will enter its peak drinking window "
                    f"in {days} days. Consider planning to enjoy this wine soon."
                ),
                urgency="high" if score >= 60 else "medium",
                days_until=days,
            )
        )

    for wine in buckets["leaving_peak"]:
        days = days_between(now, wine.drinking_window.peak_end_date)
        score = urgency_score(wine.drinking_window, now)
        alerts.append(
            DrinkingWindowAlert(
                wine_id=str(wine.id),
                wine_name=wine.name,
                vintage=wine.vintage,
                alert_type="leaving_peak",
                message=(
                    f"{wine.name} ({wine.vintage}) will leave its peak drinking window "
                    f"in {days} days. This is an excellent time to enjoy this wine."
                ),
                urgency="critical" if score >= 80 else "high",
                days_until=days,
            )
        )

    for wine in buckets["over_hill"]:
        alerts.append(
            DrinkingWindowAlert(
                wine_id=str(wine.id),
                wine_name=wine.name,
                vintage=wine.vintage,
                alert_type="over_hill",
                message=(
                    f"{wine.name} ({wine.vintage}) is past its optimal drinking window. "
                    "While it may still be enjoyable, consider consuming it soon or "
                    "using it for cooking."
                ),
                urgency="critical",
            )
        )

    alerts.sort(key=lambda alert: URGENCY_WEIGHT[alert.urgency], reverse=True)
    return alerts[:limit]


async def in_stock_wines(user: User) -> list[Wine]:
    return await Wine.find(Wine.owner_id == user.id, Wine.quantity > 0).to_list()


async def generate_alerts(user: User, now: datetime | None = None) -> list[DrinkingWindowAlert]:
    """Current alerts for a user; empty when drinking-window alerts are off."""
    preferences = get_preferences(user)
    if preferences.get("drinkingWindowAlerts") is False:
        return []
    return build_alerts(await in_stock_wines(user), now)


async def create_alert_notifications(
    user: User, alerts: list[DrinkingWindowAlert]
) -> list[Notification]:
    notifications = [
        Notification(
            owner_id=user.id,
            type=NotificationType.DRINKING_WINDOW,
            title=alert_title(alert.alert_type),
            message=alert.message,
            data={
                "wineId": alert.wine_id,
                "alertType": alert.alert_type,
                "urgency": alert.urgency,
                "daysUntil": alert.days_until,
            },
        )
        for alert in alerts
    ]
    if notifications:
        await Notification.insert_many(notifications)
    return notifications


async def send_alert_email(user: User, alerts: list[DrinkingWindowAlert]) -> bool:
    """Email the high and critical alerts; returns False when none qualify."""
    urgent = [alert for alert in alerts if alert.urgency in ("high", "critical")]
    if not urgent:
        return False

    payload: list[dict[str, Any]] = [alert.model_dump() for alert in urgent]
    sent = await get_email_service().send_drinking_window_alerts(user.email, payload)
    if sent:
        posthog_service.capture(
            distinct_id=str(user.id),
            event="alerts_emailed",
            properties={"count": len(urgent)},
        )
    else:
        logger.error("Failed to send drinking window alert email (user=%s)", user.id)
    return sent


async def process_user_alerts(user: User, now: datetime | None = None) -> int:
    """Generate one user's alerts and deliver or queue them.

    With the "immediate" frequency outside quiet hours the alerts are stored
    and emailed now. Otherwise they are queued for the scheduler, which
    delivers them at the frequency's next slot or after quiet hours.
    """
    alerts = await generate_alerts(user, now)
    if not alerts:
        return 0

    preferences = get_preferences(user)
    if drinking_window_frequency(preferences) != "immediate" or in_quiet_hours(preferences, now):
        queued = await schedule_drinking_window_alerts(user, alerts, now)
        logger.info(
            "Queued %d drinking window alerts for %s (user=%s)",
            len(queued),
            queued[0].scheduled_for.isoformat(),
            user.id,
        )
        return len(alerts)

    await create_alert_notifications(user, alerts)
    if preferences.get("emailEnabled"):
        await send_alert_email(user, alerts)

    logger.info("Created %d drinking window alerts (user=%s)", len(alerts), user.id)
    return len(alerts)


async def process_all_user_alerts(now: datetime | None = None) -> dict[str, int]:
    """Run alert processing for every active user.

    A failure for one user is logged and does not stop the others.
    """
    processed = failed = total_alerts = 0
    async for user in User.find(User.is_active == True):  # noqa: E712
        try:
            total_alerts += await process_user_alerts(user, now)
            processed += 1
        except Exception:
            failed += 1
            logger.exception("Alert processing failed (user=%s)", user.id)

    logger.info(
        "Alert processing finished: users=%d, failed=%d, alerts=%d",
        processed,
        failed,
        total_alerts,
    )
    return {"users": processed, "failed": failed, "alerts": total_alerts}
