"""Outbound email for account flows and cellar alerts."""

from pourtrait.services.email.base import EmailService, get_email_service
from pourtrait.services.email.console import ConsoleEmailService
from pourtrait.services.email.ses import SESEmailService

__all__ = [
    "EmailService",
    "ConsoleEmailService",
    "SESEmailService",
    "get_email_service",
]
