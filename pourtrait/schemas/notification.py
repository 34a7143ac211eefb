"""Notification preference, alert and history schemas (camelCase on the wire)."""

from datetime import datetime
from typing import Any, Literal

from beanie import PydanticObjectId
from pydantic import ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel

from pourtrait.schemas.base import CamelModel

TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

AlertFrequency = Literal["immediate", "daily", "weekly"]
InventoryFrequency = Literal["weekly", "monthly", "never"]


class QuietHours(CamelModel):
    enabled: StrictBool
    start: str = Field(pattern=TIME_PATTERN)
    end: str = Field(pattern=TIME_PATTERN)


class NotificationFrequency(CamelModel):
    drinking_window: AlertFrequency
    recommendations: AlertFrequency
    inventory: InventoryFrequency


class NotificationPreferences(CamelModel):
    """Per-user notification switches.

    The six toggles must be real booleans; ``"true"`` or ``1`` are rejected.
    """

    push_enabled: StrictBool
    email_enabled: StrictBool
    drinking_window_alerts: StrictBool
    recommendation_alerts: StrictBool
    inventory_reminders: StrictBool
    system_alerts: StrictBool
    quiet_hours: QuietHours | None = None
    frequency: NotificationFrequency | None = None


class PreferencePatch(CamelModel):
    key: str | None = None
    value: Any = None


class DrinkingWindowAlert(CamelModel):
    wine_id: str
    wine_name: str
    vintage: int
    alert_type: Literal["entering_peak", "leaving_peak", "over_hill"]
    message: str
    urgency: Literal["low", "medium", "high", "critical"]
    days_until: int | None = None


class NotificationResponse(CamelModel):
    id: str
    type: str
    title: str
    message: str
    data: dict[str, Any] | None = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", mode="before")
    @classmethod
    def convert_objectid_to_str(cls, v: Any) -> str:
        if isinstance(v, PydanticObjectId):
            return str(v)
        return v


class SnoozeRequest(CamelModel):
    notification_id: str | None = None
    snooze_minutes: int | None = None


class ScheduledNotificationResponse(CamelModel):
    id: str
    type: str
    scheduled_for: datetime
    payload: dict[str, Any]
    status: str
    attempts: int
    last_attempt: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, scheduled: Any) -> "ScheduledNotificationResponse":
        return cls(
            id=str(scheduled.id),
            type=scheduled.type.value,
            scheduled_for=scheduled.scheduled_for,
            payload={to_camel(k): v for k, v in scheduled.payload.model_dump().items()},
            status=scheduled.status.value,
            attempts=scheduled.attempts,
            last_attempt=scheduled.last_attempt,
            created_at=scheduled.created_at,
            updated_at=scheduled.updated_at,
        )
