"""Tests for notification preferences, the delivery scheduler and history endpoints."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from pourtrait.models import (
    DeliveryLog,
    Notification,
    NotificationPayload,
    NotificationType,
    ScheduledNotification,
    ScheduleStatus,
    User,
)
from pourtrait.services.preferences import (
    DEFAULT_PREFERENCES,
    in_quiet_hours,
    is_type_enabled,
    quiet_hours_end,
    validate_preferences,
)
from pourtrait.schemas.notification import DrinkingWindowAlert
from pourtrait.services.alerts import process_user_alerts
from pourtrait.services.scheduler import (
    cancel_notification,
    deliver,
    delivery_stats,
    process_pending,
    schedule_drinking_window_alerts,
    schedule_notification,
    schedule_time_for_frequency,
)

from tests.conftest import TEST_CRON_SECRET

NOW = datetime(2024, 6, 12, 15, 30, tzinfo=timezone.utc)  # a Wednesday


def preferences(**overrides) -> dict:
    prefs = {**DEFAULT_PREFERENCES}
    prefs.update(overrides)
    return prefs


def quiet(start: str, end: str, enabled: bool = True) -> dict:
    return preferences(quietHours={"enabled": enabled, "start": start, "end": end})


async def queue(
    user: User,
    notification_type: NotificationType = NotificationType.RECOMMENDATION,
    status: ScheduleStatus = ScheduleStatus.PENDING,
    scheduled_for: datetime = NOW - timedelta(minutes=5),
    data: dict | None = None,
    created_at: datetime | None = None,
) -> ScheduledNotification:
    scheduled = ScheduledNotification(
        owner_id=user.id,
        type=notification_type,
        scheduled_for=scheduled_for,
        payload=NotificationPayload(title="Hello", body="A <b>note</b>", data=data or {}),
        status=status,
    )
    if created_at is not None:
        scheduled.created_at = created_at
    await scheduled.insert()
    return scheduled


class TestPreferenceRules:
    def test_defaults_validate(self) -> None:
        assert validate_preferences(DEFAULT_PREFERENCES) == DEFAULT_PREFERENCES

    def test_only_explicit_false_disables_a_type(self) -> None:
        assert is_type_enabled({}, NotificationType.SYSTEM) is True
        assert is_type_enabled({"systemAlerts": False}, NotificationType.SYSTEM) is False
        assert is_type_enabled({"systemAlerts": None}, NotificationType.SYSTEM) is True

    @pytest.mark.parametrize(
        "start, end, hour, minute, expected",
        [
            ("22:00", "08:00", 23, 0, True),
            ("22:00", "08:00", 3, 15, True),
            ("22:00", "08:00", 8, 0, True),
            ("22:00", "08:00", 8, 1, False),
            ("22:00", "08:00", 12, 0, False),
            ("13:00", "17:00", 13, 0, True),
            ("13:00", "17:00", 17, 0, True),
            ("13:00", "17:00", 18, 0, False),
        ],
    )
    def test_quiet_hours(self, start, end, hour, minute, expected) -> None:
        now = NOW.replace(hour=hour, minute=minute)
        assert in_quiet_hours(quiet(start, end), now) is expected

    def test_quiet_hours_disabled(self) -> None:
        now = NOW.replace(hour=23)
        assert in_quiet_hours(quiet("22:00", "08:00", enabled=False), now) is False

    def test_quiet_hours_end_rolls_to_tomorrow(self) -> None:
        prefs = quiet("22:00", "08:00")
        late = NOW.replace(hour=23, minute=0)
        assert quiet_hours_end(prefs, late) == datetime(2024, 6, 13, 8, 0, tzinfo=timezone.utc)
        early = NOW.replace(hour=3, minute=0)
        assert quiet_hours_end(prefs, early) == datetime(2024, 6, 12, 8, 0, tzinfo=timezone.utc)


class TestScheduleTimes:
    def test_immediate(self) -> None:
        assert schedule_time_for_frequency("immediate", NOW) == NOW

    def test_daily_is_tomorrow_at_nine(self) -> None:
        assert schedule_time_for_frequency("daily", NOW) == datetime(
            2024, 6, 13, 9, 0, tzinfo=timezone.utc
        )

    def test_weekly_is_next_monday_at_nine(self) -> None:
        assert schedule_time_for_frequency("weekly", NOW) == datetime(
            2024, 6, 17, 9, 0, tzinfo=timezone.utc
        )

    def test_weekly_on_a_monday_is_a_week_later(self) -> None:
        monday = datetime(2024, 6, 10, 7, 0, tzinfo=timezone.utc)
        assert schedule_time_for_frequency("weekly", monday) == datetime(
            2024, 6, 17, 9, 0, tzinfo=timezone.utc
        )


def test_delivery_stats() -> None:
    stats = delivery_stats(
        [ScheduleStatus.SENT, ScheduleStatus.SENT, ScheduleStatus.FAILED]
    )
    assert stats == {
        "total": 3,
        "pending": 0,
        "sent": 2,
        "failed": 1,
        "cancelled": 0,
        "deliveryRate": 67,
    }
    assert delivery_stats([])["deliveryRate"] == 0


class TestDelivery:
    async def test_delivers_in_app(self, test_user_doc: User) -> None:
        scheduled = await queue(test_user_doc)

        status = await deliver(scheduled, NOW)

        assert status == ScheduleStatus.SENT
        reloaded = await ScheduledNotification.get(scheduled.id)
        assert reloaded.status == ScheduleStatus.SENT
        assert reloaded.attempts == 1

        notification = await Notification.find_one(Notification.owner_id == test_user_doc.id)
        assert notification.title == "Hello"

        log = await DeliveryLog.find_one(DeliveryLog.scheduled_notification_id == scheduled.id)
        assert log.delivery_status == "sent"
        assert {"type": "in_app", "success": True} in log.delivery_channels

    async def test_disabled_type_is_cancelled(self, test_user_doc: User) -> None:
        test_user_doc.notification_preferences = preferences(recommendationAlerts=False)
        await test_user_doc.save()
        scheduled = await queue(test_user_doc)

        assert await deliver(scheduled, NOW) == ScheduleStatus.CANCELLED
        assert await Notification.find_all().count() == 0

    async def test_quiet_hours_defer_delivery(self, test_user_doc: User) -> None:
        test_user_doc.notification_preferences = quiet("22:00", "08:00")
        await test_user_doc.save()
        scheduled = await queue(test_user_doc)
        late = NOW.replace(hour=23, minute=0)

        assert await deliver(scheduled, late) == ScheduleStatus.PENDING

        reloaded = await ScheduledNotification.get(scheduled.id)
        assert reloaded.status == ScheduleStatus.PENDING
        assert reloaded.scheduled_for.replace(tzinfo=timezone.utc) == datetime(
            2024, 6, 13, 8, 0, tzinfo=timezone.utc
        )
        assert await Notification.find_all().count() == 0

    async def test_urgent_alerts_are_emailed(self, test_user_doc: User) -> None:
        scheduled = await queue(
            test_user_doc,
            notification_type=NotificationType.DRINKING_WINDOW,
            data={"urgency": "critical"},
        )
        email_service = AsyncMock()
        email_service.send_email = AsyncMock(return_value=True)

        with patch("pourtrait.services.scheduler.get_email_service", return_value=email_service):
            assert await deliver(scheduled, NOW) == ScheduleStatus.SENT

        kwargs = email_service.send_email.call_args.kwargs
        assert kwargs["to_email"] == "test@example.com"
        assert kwargs["html_content"] == "<p>A &lt;b&gt;note&lt;/b&gt;</p>"

    async def test_missing_user_marks_failed(self, init_test_db) -> None:
        ghost = User(email="ghost@example.com", hashed_password="x")
        await ghost.insert()
        scheduled = await queue(ghost)
        await ghost.delete()

        assert await deliver(scheduled, NOW) == ScheduleStatus.FAILED
        log = await DeliveryLog.find_one(DeliveryLog.scheduled_notification_id == scheduled.id)
        assert log.delivery_channels[0]["type"] == "system"

    async def test_process_pending_only_takes_due_rows(self, test_user_doc: User) -> None:
        await queue(test_user_doc)
        future = await queue(test_user_doc, scheduled_for=NOW + timedelta(hours=1))
        await queue(test_user_doc, status=ScheduleStatus.CANCELLED)

        counts = await process_pending(NOW)

        assert counts["sent"] == 1
        assert (await ScheduledNotification.get(future.id)).status == ScheduleStatus.PENDING


def leaving_peak_alert(wine_id: str = "665f1c2e9b1e8a0012345678") -> DrinkingWindowAlert:
    return DrinkingWindowAlert(
        wine_id=wine_id,
        wine_name="Barolo",
        vintage=2016,
        alert_type="leaving_peak",
        message="Barolo (2016) will leave its peak drinking window in 10 days.",
        urgency="critical",
        days_until=10,
    )


def alert_frequency(frequency: str) -> dict:
    return preferences(frequency={**DEFAULT_PREFERENCES["frequency"], "drinkingWindow": frequency})


async def set_preferences(user: User, prefs: dict) -> None:
    user.notification_preferences = prefs
    await user.save()


class TestScheduling:
    async def test_schedule_notification(self, test_user_doc: User) -> None:
        payload = NotificationPayload(title="Restock", body="Two bottles left")

        scheduled = await schedule_notification(
            test_user_doc.id, NotificationType.INVENTORY_REMINDER, payload, NOW + timedelta(hours=2)
        )

        stored = await ScheduledNotification.get(scheduled.id)
        assert stored.status == ScheduleStatus.PENDING
        assert stored.owner_id == test_user_doc.id
        assert stored.payload.title == "Restock"
        assert (await process_pending(NOW))["sent"] == 0

    async def test_cancel_notification(self, test_user_doc: User) -> None:
        scheduled = await queue(test_user_doc)
        other = User(email="other@example.com", hashed_password="x")
        await other.insert()

        assert await cancel_notification(scheduled.id, other.id) is False
        assert (await ScheduledNotification.get(scheduled.id)).status == ScheduleStatus.PENDING

        assert await cancel_notification(scheduled.id, test_user_doc.id) is True
        assert (await ScheduledNotification.get(scheduled.id)).status == ScheduleStatus.CANCELLED
        assert (await process_pending(NOW))["sent"] == 0
        assert await Notification.find_all().count() == 0

    async def test_daily_alerts_wait_for_next_morning(self, test_user_doc: User) -> None:
        await set_preferences(test_user_doc, alert_frequency("daily"))

        [scheduled] = await schedule_drinking_window_alerts(test_user_doc, [leaving_peak_alert()], NOW)

        assert scheduled.scheduled_for == datetime(2024, 6, 13, 9, 0, tzinfo=timezone.utc)
        assert scheduled.type == NotificationType.DRINKING_WINDOW
        assert scheduled.payload.data["urgency"] == "critical"
        assert scheduled.payload.require_interaction is True

    async def test_alerts_in_quiet_hours_move_to_quiet_hours_end(self, test_user_doc: User) -> None:
        prefs = quiet("15:00", "16:00")
        await set_preferences(test_user_doc, prefs)

        [scheduled] = await schedule_drinking_window_alerts(test_user_doc, [leaving_peak_alert()], NOW)

        assert scheduled.scheduled_for == quiet_hours_end(prefs, NOW)
        assert scheduled.scheduled_for == datetime(2024, 6, 12, 16, 0, tzinfo=timezone.utc)

    async def test_rescheduling_replaces_pending_alert(self, test_user_doc: User) -> None:
        [first] = await schedule_drinking_window_alerts(test_user_doc, [leaving_peak_alert()], NOW)
        [second] = await schedule_drinking_window_alerts(
            test_user_doc, [leaving_peak_alert()], NOW + timedelta(days=1)
        )

        assert (await ScheduledNotification.get(first.id)).status == ScheduleStatus.CANCELLED
        assert (await ScheduledNotification.get(second.id)).status == ScheduleStatus.PENDING

    async def test_alert_job_queues_non_immediate_alerts(
        self, client: AsyncClient, wine_payload, test_user_doc: User
    ) -> None:
        now = datetime.now(timezone.utc)
        window = {
            "earliest_date": (now - timedelta(days=800)).isoformat(),
            "peak_start_date": (now - timedelta(days=300)).isoformat(),
            "peak_end_date": (now + timedelta(days=10)).isoformat(),
            "latest_date": (now + timedelta(days=400)).isoformat(),
        }
        response = await client.post("/api/wines", json=wine_payload(drinking_window=window))
        assert response.status_code == 201
        await set_preferences(test_user_doc, alert_frequency("weekly"))

        created = await process_user_alerts(test_user_doc)

        assert created >= 1
        assert await Notification.find_all().count() == 0
        queued = await ScheduledNotification.find(
            ScheduledNotification.owner_id == test_user_doc.id
        ).to_list()
        assert len(queued) == created
        due = queued[0].scheduled_for.replace(tzinfo=timezone.utc)
        assert due > now

        with patch("pourtrait.services.scheduler.get_email_service") as get_service:
            get_service.return_value.send_email = AsyncMock(return_value=True)
            counts = await process_pending(due)

        assert counts["sent"] == created
        assert await Notification.find_all().count() == created


class TestPreferenceEndpoints:
    async def test_defaults_returned(self, client: AsyncClient) -> None:
        response = await client.get("/api/notifications/preferences")
        assert response.status_code == 200
        assert response.json() == {"success": True, "preferences": DEFAULT_PREFERENCES}

    async def test_replace_preferences(self, client: AsyncClient) -> None:
        new_prefs = preferences(emailEnabled=False)
        response = await client.put(
            "/api/notifications/preferences", json={"preferences": new_prefs}
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        stored = (await client.get("/api/notifications/preferences")).json()["preferences"]
        assert stored["emailEnabled"] is False

    async def test_bare_object_is_accepted(self, client: AsyncClient) -> None:
        response = await client.put(
            "/api/notifications/preferences", json=preferences(pushEnabled=False)
        )
        assert response.status_code == 200
        assert response.json()["preferences"]["pushEnabled"] is False

    @pytest.mark.parametrize(
        "bad",
        [
            preferences(pushEnabled="true"),
            preferences(systemAlerts=1),
            preferences(quietHours={"enabled": True, "start": "25:00", "end": "08:00"}),
            {"pushEnabled": True},
        ],
    )
    async def test_invalid_preferences_are_rejected(self, client: AsyncClient, bad) -> None:
        response = await client.put("/api/notifications/preferences", json={"preferences": bad})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid preferences format"}

        stored = (await client.get("/api/notifications/preferences")).json()["preferences"]
        assert stored == DEFAULT_PREFERENCES

    async def test_patch_single_preference(self, client: AsyncClient) -> None:
        response = await client.patch(
            "/api/notifications/preferences",
            json={"key": "inventory_reminders", "value": False},
        )
        assert response.status_code == 200
        assert response.json()["preferences"]["inventoryReminders"] is False

    @pytest.mark.parametrize("body", [{}, {"key": "pushEnabled"}, {"value": True}])
    async def test_patch_requires_key_and_value(self, client: AsyncClient, body) -> None:
        response = await client.patch("/api/notifications/preferences", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Key and value are required"}

    async def test_patch_with_invalid_value(self, client: AsyncClient) -> None:
        response = await client.patch(
            "/api/notifications/preferences", json={"key": "pushEnabled", "value": "yes"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid preferences format"}


class TestInbox:
    async def test_list_and_mark_read(self, client: AsyncClient, test_user_doc: User) -> None:
        first = Notification(
            owner_id=test_user_doc.id,
            type=NotificationType.SYSTEM,
            title="One",
            message="First",
        )
        second = Notification(
            owner_id=test_user_doc.id,
            type=NotificationType.SYSTEM,
            title="Two",
            message="Second",
        )
        await first.insert()
        await second.insert()

        response = await client.post(f"/api/notifications/{first.id}/read")
        assert response.status_code == 200
        assert response.json()["read"] is True

        unread = (await client.get("/api/notifications", params={"unread_only": "true"})).json()
        assert [n["title"] for n in unread] == ["Two"]
        assert "createdAt" in unread[0]

    async def test_mark_read_unknown(self, client: AsyncClient) -> None:
        response = await client.post("/api/notifications/not-an-id/read")
        assert response.status_code == 404


class TestProcessing:
    async def test_post_requires_cron_secret(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/notifications/process", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"

    async def test_post_with_cron_secret(self, unauthenticated_client: AsyncClient) -> None:
        response = await unauthenticated_client.post(
            "/api/notifications/process",
            headers={"Authorization": f"Bearer {TEST_CRON_SECRET}"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Notifications processed successfully"
        assert "timestamp" in data

    async def test_get_without_secret_is_health_probe(
        self, unauthenticated_client: AsyncClient
    ) -> None:
        response = await unauthenticated_client.get("/api/notifications/process")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "notification-processor"

    async def test_get_with_secret_runs_job(self, unauthenticated_client: AsyncClient) -> None:
        response = await unauthenticated_client.get(
            "/api/notifications/process",
            headers={"Authorization": f"Bearer {TEST_CRON_SECRET}"},
        )
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestHistory:
    async def test_history_pagination_and_stats(
        self, client: AsyncClient, test_user_doc: User
    ) -> None:
        for _ in range(3):
            await queue(test_user_doc, status=ScheduleStatus.SENT)
        await queue(test_user_doc, status=ScheduleStatus.FAILED)
        await queue(test_user_doc, notification_type=NotificationType.SYSTEM)

        response = await client.get(
            "/api/notifications/history",
            params={"page": 1, "limit": 2, "includeStats": "true"},
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["notifications"]) == 2
        assert data["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 5,
            "totalPages": 3,
            "hasNext": True,
            "hasPrev": False,
        }
        assert data["stats"]["sent"] == 3
        assert data["stats"]["deliveryRate"] == 60
        assert "scheduledFor" in data["notifications"][0]

        sent_only = (
            await client.get("/api/notifications/history", params={"status": "sent"})
        ).json()
        assert sent_only["pagination"]["total"] == 3
        assert sent_only["filters"] == {"type": None, "status": "sent"}
        assert sent_only["stats"] is None

    async def test_history_limit_is_capped(self, client: AsyncClient) -> None:
        data = (await client.get("/api/notifications/history", params={"limit": 500})).json()
        assert data["pagination"]["limit"] == 100

    async def test_delete_requires_confirmation(self, client: AsyncClient) -> None:
        response = await client.delete("/api/notifications/history")
        assert response.status_code == 400
        assert response.json() == {
            "error": "Confirmation required. Add ?confirm=true to proceed."
        }

    async def test_delete_keeps_pending(self, client: AsyncClient, test_user_doc: User) -> None:
        await queue(test_user_doc, status=ScheduleStatus.SENT)
        await queue(test_user_doc, status=ScheduleStatus.CANCELLED)
        pending = await queue(test_user_doc)

        response = await client.delete("/api/notifications/history", params={"confirm": "true"})
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Deleted 2 notification records",
            "deletedCount": 2,
        }
        remaining = await ScheduledNotification.find_all().to_list()
        assert [row.id for row in remaining] == [pending.id]

    async def test_delete_pending_filter_deletes_nothing(
        self, client: AsyncClient, test_user_doc: User
    ) -> None:
        await queue(test_user_doc)
        response = await client.delete(
            "/api/notifications/history", params={"confirm": "true", "status": "pending"}
        )
        assert response.json()["deletedCount"] == 0
        assert await ScheduledNotification.find_all().count() == 1

    async def test_delete_older_than(self, client: AsyncClient, test_user_doc: User) -> None:
        await queue(
            test_user_doc,
            status=ScheduleStatus.SENT,
            created_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        )
        await queue(test_user_doc, status=ScheduleStatus.SENT)

        response = await client.delete(
            "/api/notifications/history",
            params={"confirm": "true", "olderThan": "2024-01-01T00:00:00Z"},
        )
        assert response.json()["deletedCount"] == 1

    async def test_delete_bad_date(self, client: AsyncClient) -> None:
        response = await client.delete(
            "/api/notifications/history",
            params={"confirm": "true", "olderThan": "last tuesday"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid olderThan date format"}


class TestSnooze:
    async def test_snooze(self, client: AsyncClient, test_user_doc: User) -> None:
        scheduled = await queue(test_user_doc, status=ScheduleStatus.SENT)

        response = await client.post(
            "/api/notifications/snooze",
            json={"notificationId": str(scheduled.id), "snoozeMinutes": 30},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Notification snoozed successfully"

        reloaded = await ScheduledNotification.get(scheduled.id)
        assert reloaded.status == ScheduleStatus.PENDING
        new_time = datetime.fromisoformat(data["newScheduledTime"])
        assert new_time > datetime.now(timezone.utc) + timedelta(minutes=29)

        log = await DeliveryLog.find_one(DeliveryLog.scheduled_notification_id == scheduled.id)
        assert log.delivery_channels[0]["type"] == "snooze"

    async def test_snooze_is_capped(self, client: AsyncClient, test_user_doc: User) -> None:
        scheduled = await queue(test_user_doc)
        response = await client.post(
            "/api/notifications/snooze",
            json={"notificationId": str(scheduled.id), "snoozeMinutes": 100000},
        )
        new_time = datetime.fromisoformat(response.json()["newScheduledTime"])
        assert new_time <= datetime.now(timezone.utc) + timedelta(days=1)

    @pytest.mark.parametrize(
        "body",
        [{}, {"notificationId": "abc"}, {"notificationId": "abc", "snoozeMinutes": 0}],
    )
    async def test_snooze_validation(self, client: AsyncClient, body) -> None:
        response = await client.post("/api/notifications/snooze", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid notification ID or snooze duration"}

    async def test_snooze_unknown(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/notifications/snooze",
            json={"notificationId": "0123456789abcdef01234567", "snoozeMinutes": 10},
        )
        assert response.status_code == 404
