"""Base email service and backend factory."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

if TYPE_CHECKING:
    from pourtrait.config.settings import Settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Background colour per alert urgency in the alert digest
URGENCY_COLORS = {
    "critical": "#fef2f2",
    "high": "#fff7ed",
    "medium": "#fefce8",
    "low": "#f9fafb",
}


class EmailService(ABC):
    """Abstract base class for email backends.

    Subclasses only implement :meth:`send_email`; the message builders
    render the Jinja2 templates shipped next to this module.
    """

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings
        self.sender = settings.email_sender
        self.sender_name = settings.email_sender_name
        self.frontend_url = settings.frontend_url.rstrip("/")

        self.template_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _render_template(self, template_name: str, **context: object) -> str:
        template = self.template_env.get_template(template_name)
        return template.render(**context)

    def _format_sender(self) -> str:
        """Format the sender like ``Pourtrait <hello@pourtrait.app>``."""
        return f"{self.sender_name} <{self.sender}>"

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email.

        Args:
            to_email: Recipient email address.
            subject: Email subject.
            html_content: HTML email body.
            text_content: Plain text email body (optional).

        Returns:
            True if email was sent successfully, False otherwise.
        """

    async def _send_templated(self, to_email: str, subject: str, template: str, **context: Any) -> bool:
        """Render ``<template>.html`` and ``<template>.txt`` and send both parts."""
        context.setdefault("app_name", self.settings.app_name)
        return await self.send_email(
            to_email=to_email,
            subject=subject,
            html_content=self._render_template(f"{template}.html", **context),
            text_content=self._render_template(f"{template}.txt", **context),
        )

    async def send_verification_email(self, to_email: str, token: str) -> bool:
        return await self._send_templated(
            to_email,
            f"Verify your {self.settings.app_name} account",
            "verification",
            verify_url=f"{self.frontend_url}/auth/verify?token={token}",
        )

    async def send_password_reset_email(self, to_email: str, token: str) -> bool:
        return await self._send_templated(
            to_email,
            f"Reset your {self.settings.app_name} password",
            "password_reset",
            reset_url=f"{self.frontend_url}/auth/reset-password?token={token}",
        )

    async def send_drinking_window_alerts(
        self, to_email: str, alerts: list[dict[str, Any]]
    ) -> bool:
        """Send a digest of drinking-window alerts.

        Each alert is a mapping with ``wine_name``, ``vintage``, ``message``,
        ``urgency`` and optionally ``days_until``. Callers pass only the
        high and critical alerts.
        """
        if not alerts:
            return False

        return await self._send_templated(
            to_email,
            alert_digest_subject(alerts),
            "drinking_window_alerts",
            alerts=[
                {**alert, "color": URGENCY_COLORS.get(alert["urgency"], URGENCY_COLORS["low"])}
                for alert in alerts
            ],
            count=len(alerts),
        )


def alert_digest_subject(alerts: list[dict[str, Any]]) -> str:
    critical = sum(1 for alert in alerts if alert["urgency"] == "critical")
    high = sum(1 for alert in alerts if alert["urgency"] == "high")
    if critical:
        return f"{critical} Critical Wine Alert{'s' if critical > 1 else ''}"
    if high:
        return f"{high} High Priority Wine Alert{'s' if high > 1 else ''}"
    return "Wine Drinking Window Alerts"


def get_email_service() -> EmailService:
    """Return the email backend selected by ``email.backend``."""
    from pourtrait.config import settings

    if settings.email_backend == "ses":
        from pourtrait.services.email.ses import SESEmailService

        return SESEmailService(settings)

    from pourtrait.services.email.console import ConsoleEmailService

    return ConsoleEmailService(settings)
