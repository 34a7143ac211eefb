"""Notification endpoints: preferences, in-app inbox, scheduler hooks and history."""

import logging
import math
from datetime import datetime
from typing import Annotated, Any

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Body, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from pourtrait.models import Notification, ScheduledNotification, ScheduleStatus
from pourtrait.models.notification import NotificationType
from pourtrait.models._common import utc_now
from pourtrait.schemas.notification import (
    NotificationResponse,
    PreferencePatch,
    ScheduledNotificationResponse,
    SnoozeRequest,
)
from pourtrait.services.alerts import process_all_user_alerts
from pourtrait.services.auth import RequireAuth, RequireCron, is_cron_authorized
from pourtrait.services.preferences import get_preferences, patch_preference, save_preferences
from pourtrait.services.scheduler import delivery_stats, process_pending, snooze

logger = logging.getLogger(__name__)

router = APIRouter()

FINISHED_STATUSES = [ScheduleStatus.SENT, ScheduleStatus.FAILED, ScheduleStatus.CANCELLED]


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@router.get("/preferences")
async def read_preferences(current_user: RequireAuth) -> dict:
    return {"success": True, "preferences": get_preferences(current_user)}


@router.put("/preferences")
async def replace_preferences(current_user: RequireAuth, body: Any = Body(None)) -> Any:
    """Replace all preferences; a malformed body leaves the stored ones untouched."""
    raw = body.get("preferences", body) if isinstance(body, dict) else body
    try:
        preferences = await save_preferences(current_user, raw)
    except ValidationError:
        return _bad_request("Invalid preferences format")
    return {"success": True, "preferences": preferences}


@router.patch("/preferences")
async def update_preference(current_user: RequireAuth, body: Any = Body(None)) -> Any:
    """Set a single top-level preference."""
    try:
        patch = PreferencePatch.model_validate(body if isinstance(body, dict) else {})
    except ValidationError:
        return _bad_request("Key and value are required")
    if not patch.key or patch.value is None:
        return _bad_request("Key and value are required")

    try:
        preferences = await patch_preference(current_user, patch.key, patch.value)
    except ValidationError:
        return _bad_request("Invalid preferences format")
    return {"success": True, "preferences": preferences}


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: RequireAuth,
    unread_only: bool = False,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> list[NotificationResponse]:
    query = Notification.find(Notification.owner_id == current_user.id)
    if unread_only:
        query = query.find(Notification.read == False)  # noqa: E712
    notifications = await query.sort(-Notification.created_at).limit(limit).to_list()
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: str, current_user: RequireAuth) -> NotificationResponse:
    try:
        notification = await Notification.find_one(
            Notification.id == PydanticObjectId(notification_id),
            Notification.owner_id == current_user.id,
        )
    except (InvalidId, ValidationError):
        notification = None

    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )

    notification.read = True
    await notification.save()
    return NotificationResponse.model_validate(notification)


async def _run_processing() -> dict[str, Any]:
    delivered = await process_pending()
    alerts = await process_all_user_alerts()
    logger.info("Notification processing finished: delivered=%s alerts=%s", delivered, alerts)
    return {
        "success": True,
        "message": "Notifications processed successfully",
        "timestamp": utc_now().isoformat(),
    }


@router.post("/process", dependencies=[RequireCron])
async def process_notifications() -> dict:
    """Scheduler hook: deliver due notifications and generate new alerts."""
    return await _run_processing()


@router.get("/process")
async def process_or_health(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Same as POST for the scheduler; a health probe for everyone else."""
    if is_cron_authorized(authorization):
        return await _run_processing()
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "notification-processor",
    }


@router.get("/history")
async def notification_history(
    current_user: RequireAuth,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = 20,
    type: NotificationType | None = None,
    status_filter: Annotated[ScheduleStatus | None, Query(alias="status")] = None,
    include_stats: Annotated[bool, Query(alias="includeStats")] = False,
) -> dict:
    """Scheduled notifications, newest first, with optional delivery stats."""
    limit = min(limit, 100)
    offset = (page - 1) * limit

    query = ScheduledNotification.find(ScheduledNotification.owner_id == current_user.id)
    if type is not None:
        query = query.find(ScheduledNotification.type == type)
    if status_filter is not None:
        query = query.find(ScheduledNotification.status == status_filter)

    total = await query.count()
    rows = await query.sort(-ScheduledNotification.created_at).skip(offset).limit(limit).to_list()

    stats = None
    if include_stats:
        everything = await ScheduledNotification.find(
            ScheduledNotification.owner_id == current_user.id
        ).to_list()
        stats = delivery_stats([row.status for row in everything])

    return {
        "success": True,
        "notifications": [
            ScheduledNotificationResponse.from_document(row).model_dump(by_alias=True, mode="json")
            for row in rows
        ],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
            "hasNext": offset + limit < total,
            "hasPrev": page > 1,
        },
        "stats": stats,
        "filters": {
            "type": type.value if type else None,
            "status": status_filter.value if status_filter else None,
        },
    }


@router.delete("/history")
async def clear_history(
    current_user: RequireAuth,
    confirm: bool = False,
    type: NotificationType | None = None,
    status_filter: Annotated[ScheduleStatus | None, Query(alias="status")] = None,
    older_than: Annotated[str | None, Query(alias="olderThan")] = None,
) -> Any:
    """Delete finished notifications; pending ones are never removed."""
    if not confirm:
        return _bad_request("Confirmation required. Add ?confirm=true to proceed.")

    conditions: dict[str, Any] = {"status": {"$in": [s.value for s in FINISHED_STATUSES]}}
    if status_filter is not None:
        if status_filter not in FINISHED_STATUSES:
            return {"success": True, "message": "Deleted 0 notification records", "deletedCount": 0}
        conditions["status"] = status_filter.value
    if type is not None:
        conditions["type"] = type.value
    if older_than:
        try:
            cutoff = datetime.fromisoformat(older_than.replace("Z", "+00:00"))
        except ValueError:
            return _bad_request("Invalid olderThan date format")
        conditions["created_at"] = {"$lt": cutoff}

    result = await ScheduledNotification.find(
        ScheduledNotification.owner_id == current_user.id, conditions
    ).delete()
    deleted = result.deleted_count if result else 0
    logger.info("Deleted %d notification records (user=%s)", deleted, current_user.id)
    return {
        "success": True,
        "message": f"Deleted {deleted} notification records",
        "deletedCount": deleted,
    }


@router.post("/snooze")
async def snooze_notification(current_user: RequireAuth, body: Any = Body(None)) -> Any:
    try:
        request = SnoozeRequest.model_validate(body if isinstance(body, dict) else {})
    except ValidationError:
        request = SnoozeRequest()
    if not request.notification_id or not request.snooze_minutes or request.snooze_minutes <= 0:
        return _bad_request("Invalid notification ID or snooze duration")

    try:
        scheduled = await ScheduledNotification.find_one(
            ScheduledNotification.id == PydanticObjectId(request.notification_id),
            ScheduledNotification.owner_id == current_user.id,
        )
    except (InvalidId, ValidationError):
        scheduled = None
    if scheduled is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )

    scheduled = await snooze(scheduled, request.snooze_minutes)
    return {
        "success": True,
        "message": "Notification snoozed successfully",
        "newScheduledTime": scheduled.scheduled_for.isoformat(),
    }
