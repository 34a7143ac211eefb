"""In-app notifications, scheduled deliveries and their delivery log."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field

from pourtrait.models._common import utc_now


class NotificationType(str, Enum):
    DRINKING_WINDOW = "drinking_window"
    RECOMMENDATION = "recommendation"
    INVENTORY_REMINDER = "inventory_reminder"
    SYSTEM = "system"


class ScheduleStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Notification(Document):
    """A notification shown inside the app."""

    owner_id: Indexed(PydanticObjectId)
    type: NotificationType
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    read: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "notifications"
        indexes = [
            [("owner_id", 1), ("read", 1), ("created_at", -1)],
        ]


class NotificationPayload(BaseModel):
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    tag: Optional[str] = None
    require_interaction: bool = False


class ScheduledNotification(Document):
    """A notification queued for delivery at ``scheduled_for``."""

    owner_id: Indexed(PydanticObjectId)
    type: NotificationType
    scheduled_for: datetime
    payload: NotificationPayload
    status: ScheduleStatus = ScheduleStatus.PENDING
    attempts: int = 0
    last_attempt: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "scheduled_notifications"
        indexes = [
            [("status", 1), ("scheduled_for", 1)],
            [("owner_id", 1), ("created_at", -1)],
        ]


class DeliveryLog(Document):
    """One delivery attempt (or user action such as snooze) on a scheduled notification."""

    scheduled_notification_id: Indexed(PydanticObjectId)
    delivery_status: str
    delivery_channels: list[dict[str, Any]] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None
    attempted_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "notification_delivery_logs"
