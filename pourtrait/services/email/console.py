"""Console email backend for development and testing."""

import logging
from collections import deque
from typing import TYPE_CHECKING

from pourtrait.services.email.base import EmailService

if TYPE_CHECKING:
    from pourtrait.config.settings import Settings

logger = logging.getLogger(__name__)

OUTBOX_SIZE = 50


class ConsoleEmailService(EmailService):
    """Logs outgoing mail and keeps the most recent messages in ``outbox``.

    Digest runs in development can be inspected without an SES sandbox.
    """

    def __init__(self, settings: "Settings") -> None:
        super().__init__(settings)
        self.outbox: deque[dict[str, str]] = deque(maxlen=OUTBOX_SIZE)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        self.outbox.append(
            {"to": to_email, "subject": subject, "html": html_content, "text": text_content or ""}
        )
        logger.info(
            "Email not sent (console backend) from=%s to=%s subject=%r\n%s",
            self._format_sender(),
            to_email,
            subject,
            text_content or "(no text content)",
        )
        return True
