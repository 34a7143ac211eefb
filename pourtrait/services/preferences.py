"""Notification preferences stored on the user document.

Preferences are kept in their camelCase wire form. Users that never saved
any get the defaults below.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from pydantic.alias_generators import to_camel

from pourtrait.models._common import utc_now
from pourtrait.models.notification import NotificationType
from pourtrait.models.user import User
from pourtrait.schemas.notification import NotificationPreferences

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: dict[str, Any] = {
    "pushEnabled": True,
    "emailEnabled": True,
    "drinkingWindowAlerts": True,
    "recommendationAlerts": True,
    "inventoryReminders": True,
    "systemAlerts": True,
    "quietHours": {"enabled": False, "start": "22:00", "end": "08:00"},
    "frequency": {
        "drinkingWindow": "immediate",
        "recommendations": "daily",
        "inventory": "weekly",
    },
}

# Preference switch consulted for each notification type
TYPE_PREFERENCE_KEYS = {
    NotificationType.DRINKING_WINDOW: "drinkingWindowAlerts",
    NotificationType.RECOMMENDATION: "recommendationAlerts",
    NotificationType.INVENTORY_REMINDER: "inventoryReminders",
    NotificationType.SYSTEM: "systemAlerts",
}


def validate_preferences(data: Any) -> dict[str, Any]:
    """Validate a full preferences object and return its wire form.

    Raises:
        pydantic.ValidationError: If any field is missing or malformed.
    """
    model = NotificationPreferences.model_validate(data)
    return model.model_dump(by_alias=True, exclude_none=True)


def get_preferences(user: User) -> dict[str, Any]:
    if user.notification_preferences:
        return user.notification_preferences
    return {**DEFAULT_PREFERENCES}


async def save_preferences(user: User, data: Any) -> dict[str, Any]:
    """Validate then store; nothing is written when validation fails."""
    preferences = validate_preferences(data)
    user.notification_preferences = preferences
    user.updated_at = utc_now()
    await user.save()
    logger.info("Notification preferences updated (user=%s)", user.id)
    return preferences


async def patch_preference(user: User, key: str, value: Any) -> dict[str, Any]:
    """Set one top-level preference and re-validate the merged object."""
    merged = {**get_preferences(user), to_camel(key): value}
    return await save_preferences(user, merged)


def is_type_enabled(preferences: dict[str, Any], notification_type: NotificationType) -> bool:
    """Only an explicit ``False`` disables a type."""
    key = TYPE_PREFERENCE_KEYS.get(notification_type)
    return key is None or preferences.get(key) is not False


def _parse_hhmm(value: str) -> tuple[int, int]:
    hours, minutes = value.split(":")
    return int(hours), int(minutes)


def in_quiet_hours(preferences: dict[str, Any], now: datetime | None = None) -> bool:
    """Whether ``now`` (UTC wall clock) falls inside the user's quiet hours.

    Handles overnight ranges such as 22:00-08:00; both ends are inclusive.
    """
    quiet = preferences.get("quietHours") or {}
    if not quiet.get("enabled"):
        return False

    now = now or utc_now()
    current = now.hour * 60 + now.minute
    start_h, start_m = _parse_hhmm(quiet["start"])
    end_h, end_m = _parse_hhmm(quiet["end"])
    start = start_h * 60 + start_m
    end = end_h * 60 + end_m

    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def quiet_hours_end(preferences: dict[str, Any], now: datetime | None = None) -> datetime:
    """Next time the quiet period ends: today at the end time, else tomorrow."""
    now = now or utc_now()
    end_h, end_m = _parse_hhmm(preferences["quietHours"]["end"])
    candidate = now.replace(hour=end_h, minute=end_m, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate
