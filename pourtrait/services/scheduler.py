"""Scheduled notification queue and its delivery loop."""

import html
import logging
from datetime import datetime, timedelta
from typing import Any

from beanie import PydanticObjectId

from pourtrait.config import settings
from pourtrait.models._common import utc_now
from pourtrait.models.notification import (
    DeliveryLog,
    Notification,
    NotificationPayload,
    NotificationType,
    ScheduledNotification,
    ScheduleStatus,
)
from pourtrait.models.user import User
from pourtrait.schemas.notification import DrinkingWindowAlert
from pourtrait.services.email import get_email_service
from pourtrait.services.preferences import (
    get_preferences,
    in_quiet_hours,
    is_type_enabled,
    quiet_hours_end,
)

logger = logging.getLogger(__name__)

DELIVERY_HOUR = 9


async def schedule_notification(
    owner_id: PydanticObjectId,
    notification_type: NotificationType,
    payload: NotificationPayload,
    scheduled_for: datetime,
) -> ScheduledNotification:
    scheduled = ScheduledNotification(
        owner_id=owner_id,
        type=notification_type,
        payload=payload,
        scheduled_for=scheduled_for,
    )
    await scheduled.insert()
    logger.debug(
        "Scheduled %s notification for %s (user=%s)",
        notification_type.value,
        scheduled_for.isoformat(),
        owner_id,
    )
    return scheduled


async def cancel_notification(notification_id: PydanticObjectId, owner_id: PydanticObjectId) -> bool:
    scheduled = await ScheduledNotification.find_one(
        ScheduledNotification.id == notification_id,
        ScheduledNotification.owner_id == owner_id,
    )
    if scheduled is None:
        return False
    scheduled.status = ScheduleStatus.CANCELLED
    scheduled.updated_at = utc_now()
    await scheduled.save()
    return True


def schedule_time_for_frequency(frequency: str, now: datetime | None = None) -> datetime:
    """immediate: now; daily: tomorrow 09:00; weekly: next Monday 09:00."""
    now = now or utc_now()
    at_nine = now.replace(hour=DELIVERY_HOUR, minute=0, second=0, microsecond=0)
    if frequency == "daily":
        return at_nine + timedelta(days=1)
    if frequency == "weekly":
        # weekday(): Monday is 0; a Monday schedules a week ahead
        days_ahead = (7 - now.weekday()) % 7 or 7
        return at_nine + timedelta(days=days_ahead)
    return now


def _is_high_priority(scheduled: ScheduledNotification) -> bool:
    if scheduled.type == NotificationType.SYSTEM:
        return True
    if scheduled.type == NotificationType.DRINKING_WINDOW:
        return scheduled.payload.data.get("urgency") in ("critical", "high")
    return False


async def _log_delivery(
    scheduled: ScheduledNotification,
    status: str,
    channels: list[dict[str, Any]],
    metadata: dict[str, Any] | None = None,
) -> None:
    await DeliveryLog(
        scheduled_notification_id=scheduled.id,
        delivery_status=status,
        delivery_channels=channels,
        metadata=metadata,
    ).insert()


async def _mark(scheduled: ScheduledNotification, status: ScheduleStatus, now: datetime) -> None:
    scheduled.status = status
    scheduled.attempts += 1
    scheduled.last_attempt = now
    scheduled.updated_at = now
    await scheduled.save()


async def deliver(scheduled: ScheduledNotification, now: datetime | None = None) -> ScheduleStatus:
    """Deliver one due notification over the channels the user allows.

    Returns the resulting status; PENDING means it was pushed past quiet hours.
    """
    now = now or utc_now()
    try:
        user = await User.get(scheduled.owner_id)
        if user is None:
            raise LookupError(f"user {scheduled.owner_id} not found")

        preferences = get_preferences(user)
        if not is_type_enabled(preferences, scheduled.type):
            scheduled.status = ScheduleStatus.CANCELLED
            scheduled.updated_at = now
            await scheduled.save()
            return ScheduleStatus.CANCELLED

        if in_quiet_hours(preferences, now):
            scheduled.scheduled_for = quiet_hours_end(preferences, now)
            scheduled.updated_at = now
            await scheduled.save()
            logger.debug("Deferred notification %s past quiet hours", scheduled.id)
            return ScheduleStatus.PENDING

        channels: list[dict[str, Any]] = []
        if preferences.get("pushEnabled"):
            channels.append({"type": "push", "success": False, "error": "push provider not configured"})

        if preferences.get("emailEnabled") and _is_high_priority(scheduled):
            sent = await get_email_service().send_email(
                to_email=user.email,
                subject=scheduled.payload.title,
                html_content=f"<p>{html.escape(scheduled.payload.body)}</p>",
                text_content=scheduled.payload.body,
            )
            channels.append({"type": "email", "success": sent})

        await Notification(
            owner_id=scheduled.owner_id,
            type=scheduled.type,
            title=scheduled.payload.title,
            message=scheduled.payload.body,
            data=scheduled.payload.data,
        ).insert()
        channels.append({"type": "in_app", "success": True})

        delivered = any(channel["success"] for channel in channels)
        status = ScheduleStatus.SENT if delivered else ScheduleStatus.FAILED
        await _log_delivery(scheduled, status.value, channels)
        await _mark(scheduled, status, now)
        return status

    except Exception as e:
        logger.exception("Delivery failed for scheduled notification %s", scheduled.id)
        await _log_delivery(
            scheduled,
            ScheduleStatus.FAILED.value,
            [{"type": "system", "success": False, "error": str(e)}],
        )
        await _mark(scheduled, ScheduleStatus.FAILED, now)
        return ScheduleStatus.FAILED


async def process_pending(now: datetime | None = None) -> dict[str, int]:
    """Deliver every due pending notification, oldest first, one batch."""
    now = now or utc_now()
    due = (
        await ScheduledNotification.find(
            ScheduledNotification.status == ScheduleStatus.PENDING,
            ScheduledNotification.scheduled_for <= now,
        )
        .sort(+ScheduledNotification.scheduled_for)
        .limit(settings.notification_batch_size)
        .to_list()
    )

    counts = {status.value: 0 for status in ScheduleStatus}
    for scheduled in due:
        counts[(await deliver(scheduled, now)).value] += 1

    if due:
        logger.info("Processed %d scheduled notifications: %s", len(due), counts)
    return counts


def drinking_window_frequency(preferences: dict[str, Any]) -> str:
    return (preferences.get("frequency") or {}).get("drinkingWindow", "immediate")


async def schedule_drinking_window_alerts(
    user: User,
    alerts: list[DrinkingWindowAlert],
    now: datetime | None = None,
) -> list[ScheduledNotification]:
    """Queue alerts using the user's drinking-window frequency.

    A delivery time inside quiet hours moves to the end of the quiet period.
    Pending alerts for the same wines are cancelled and replaced.
    """
    preferences = get_preferences(user)
    scheduled_for = schedule_time_for_frequency(drinking_window_frequency(preferences), now)
    if in_quiet_hours(preferences, scheduled_for):
        scheduled_for = quiet_hours_end(preferences, scheduled_for)

    tags = {f"drinking-window-{alert.wine_id}" for alert in alerts}
    pending = await ScheduledNotification.find(
        ScheduledNotification.owner_id == user.id,
        ScheduledNotification.type == NotificationType.DRINKING_WINDOW,
        ScheduledNotification.status == ScheduleStatus.PENDING,
    ).to_list()
    for row in pending:
        if row.payload.tag in tags:
            await cancel_notification(row.id, user.id)

    scheduled = []
    for alert in alerts:
        payload = NotificationPayload(
            title="Wine Ready to Drink",
            body=alert.message,
            data={"type": "drinking_window", "wineId": alert.wine_id, "urgency": alert.urgency},
            tag=f"drinking-window-{alert.wine_id}",
            require_interaction=alert.urgency == "critical",
        )
        scheduled.append(
            await schedule_notification(
                user.id, NotificationType.DRINKING_WINDOW, payload, scheduled_for
            )
        )
    return scheduled


async def snooze(
    scheduled: ScheduledNotification,
    minutes: int,
    now: datetime | None = None,
) -> ScheduledNotification:
    """Push a notification back by ``minutes`` (capped) and make it pending again."""
    now = now or utc_now()
    minutes = min(minutes, settings.max_snooze_minutes)
    scheduled.scheduled_for = now + timedelta(minutes=minutes)
    scheduled.status = ScheduleStatus.PENDING
    scheduled.updated_at = now
    await scheduled.save()

    await _log_delivery(
        scheduled,
        ScheduleStatus.SENT.value,
        [
            {
                "type": "snooze",
                "success": True,
                "snoozeMinutes": minutes,
                "newScheduledTime": scheduled.scheduled_for.isoformat(),
            }
        ],
        metadata={"action": "snooze"},
    )
    logger.info("Snoozed notification %s for %d minutes", scheduled.id, minutes)
    return scheduled


def delivery_stats(statuses: list[ScheduleStatus]) -> dict[str, int]:
    """Counts per status plus the sent share as a whole percentage."""
    stats = {"total": len(statuses)}
    for item in ScheduleStatus:
        stats[item.value] = sum(1 for s in statuses if s == item)
    stats["deliveryRate"] = round(stats["sent"] / stats["total"] * 100) if stats["total"] else 0
    return stats
