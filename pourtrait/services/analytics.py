"""PostHog product analytics.

Server-side events for the cellar, profile onboarding and alert delivery.
Every method is a no-op when PostHog is disabled or has no API key, so
callers never need to check. Preview visitors are tracked under their
``preview-<ms>`` id without creating a person profile.
"""

import logging
from typing import Any

import posthog

from pourtrait import __version__
from pourtrait.config import settings

logger = logging.getLogger(__name__)

ANONYMOUS_PREFIX = "preview-"


def event_properties(distinct_id: str, properties: dict[str, Any] | None) -> dict[str, Any]:
    """Event properties with the app version and the anonymous-visitor flag."""
    merged = {"app_version": __version__, **(properties or {})}
    if distinct_id.startswith(ANONYMOUS_PREFIX):
        merged["$process_person_profile"] = False
    return merged


class PostHogService:
    def __init__(self) -> None:
        self._client: Any = None
        self._initialized = False

    def is_available(self) -> bool:
        return settings.posthog_enabled and bool(settings.posthog_api_key)

    def _ensure_initialized(self) -> bool:
        """Configure the module-level client on first use."""
        if not self._initialized:
            self._initialized = True
            if self.is_available():
                posthog.project_api_key = settings.posthog_api_key
                posthog.host = settings.posthog_host
                posthog.debug = settings.posthog_debug
                self._client = posthog
                logger.info("PostHog analytics enabled (host=%s)", settings.posthog_host)
        return self._client is not None

    def capture(
        self,
        distinct_id: str,
        event: str,
        properties: dict[str, Any] | None = None,
    ) -> None:
        """Capture an event for a user id or an anonymous preview id.

        Client errors are logged; analytics never fails a request.
        """
        if not self._ensure_initialized():
            return

        try:
            self._client.capture(
                distinct_id=distinct_id,
                event=event,
                properties=event_properties(distinct_id, properties),
            )
        except Exception as e:
            logger.error("Failed to capture PostHog event %s: %s", event, e)

    def identify(self, distinct_id: str, properties: dict[str, Any] | None = None) -> None:
        if distinct_id.startswith(ANONYMOUS_PREFIX) or not self._ensure_initialized():
            return

        try:
            self._client.identify(distinct_id=distinct_id, properties=properties or {})
        except Exception as e:
            logger.error("Failed to identify PostHog user: %s", e)

    def shutdown(self) -> None:
        """Flush queued events; called from the application lifespan."""
        if self._client is None:
            return

        try:
            self._client.flush()
            self._client.shutdown()
        except Exception as e:
            logger.error("Error during PostHog shutdown: %s", e)


posthog_service = PostHogService()
