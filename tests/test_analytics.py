"""Tests for PostHog analytics service."""

from unittest.mock import MagicMock, patch

import pytest

from pourtrait import __version__
from pourtrait.services.analytics import PostHogService, event_properties


@pytest.fixture
def enabled_settings():
    with patch("pourtrait.services.analytics.settings") as mock_settings:
        mock_settings.posthog_enabled = True
        mock_settings.posthog_api_key = "phc_test_api_key"
        mock_settings.posthog_host = "https://eu.posthog.com"
        mock_settings.posthog_debug = False
        yield mock_settings


@pytest.fixture
def mock_posthog():
    with patch("pourtrait.services.analytics.posthog", MagicMock()) as mock:
        yield mock


class TestPostHogService:
    """Tests for the PostHog analytics service."""

    def test_is_available_returns_false_when_disabled(self) -> None:
        with patch("pourtrait.services.analytics.settings") as mock_settings:
            mock_settings.posthog_enabled = False
            mock_settings.posthog_api_key = "test_key"

            assert PostHogService().is_available() is False

    def test_is_available_returns_false_when_empty_api_key(self) -> None:
        with patch("pourtrait.services.analytics.settings") as mock_settings:
            mock_settings.posthog_enabled = True
            mock_settings.posthog_api_key = ""

            assert PostHogService().is_available() is False

    def test_is_available_returns_true_when_configured(self, enabled_settings) -> None:
        assert PostHogService().is_available() is True

    def test_capture_is_noop_when_not_available(self, mock_posthog) -> None:
        """Capture never reaches the client when analytics is off."""
        with patch("pourtrait.services.analytics.settings") as mock_settings:
            mock_settings.posthog_enabled = False
            mock_settings.posthog_api_key = None

            service = PostHogService()
            service.capture("user_1", "wine_added", {"type": "red"})
            service.shutdown()

        mock_posthog.capture.assert_not_called()
        mock_posthog.shutdown.assert_not_called()

    def test_capture_calls_posthog_when_available(self, enabled_settings, mock_posthog) -> None:
        service = PostHogService()
        service.capture("user_123", "profile_mapped", {"model": "m"})

        mock_posthog.capture.assert_called_once_with(
            distinct_id="user_123",
            event="profile_mapped",
            properties={"app_version": __version__, "model": "m"},
        )

    def test_capture_with_none_properties(self, enabled_settings, mock_posthog) -> None:
        PostHogService().capture("user_123", "wine_consumed", None)

        mock_posthog.capture.assert_called_once_with(
            distinct_id="user_123",
            event="wine_consumed",
            properties={"app_version": __version__},
        )

    def test_capture_swallows_client_errors(self, enabled_settings, mock_posthog) -> None:
        """Analytics failures must not break the request that triggered them."""
        mock_posthog.capture.side_effect = RuntimeError("network down")

        PostHogService().capture("user_123", "wine_added")

    def test_identify_calls_posthog_when_available(self, enabled_settings, mock_posthog) -> None:
        PostHogService().identify("user_123", {"email": "user@example.com"})

        mock_posthog.identify.assert_called_once_with(
            distinct_id="user_123",
            properties={"email": "user@example.com"},
        )

    def test_preview_visitor_is_not_profiled(self, enabled_settings, mock_posthog) -> None:
        service = PostHogService()
        service.capture("preview-1700000000000", "profile_previewed")
        service.identify("preview-1700000000000", {"email": "x@example.com"})

        properties = mock_posthog.capture.call_args.kwargs["properties"]
        assert properties["$process_person_profile"] is False
        mock_posthog.identify.assert_not_called()

    def test_shutdown_flushes_and_shuts_down_client(self, enabled_settings, mock_posthog) -> None:
        service = PostHogService()
        service.capture("user_123", "wine_added")

        service.shutdown()

        mock_posthog.flush.assert_called_once()
        mock_posthog.shutdown.assert_called_once()


@pytest.mark.asyncio
async def test_wine_added_event_is_captured(client, wine_payload) -> None:
    """Adding a wine reports a wine_added event with its type."""
    with patch("pourtrait.routers.wines.crud.posthog_service") as service:
        response = await client.post(
            "/api/wines",
            json=wine_payload(),
        )

    assert response.status_code == 201
    service.capture.assert_called_once()
    assert service.capture.call_args.kwargs["event"] == "wine_added"
    assert service.capture.call_args.kwargs["properties"]["type"] == "white"


def test_event_properties_keep_caller_values() -> None:
    assert event_properties("user_1", {"app_version": "x", "type": "red"}) == {
        "app_version": "x",
        "type": "red",
    }
