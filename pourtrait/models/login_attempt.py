"""Login attempt tracking for account lockout."""

from datetime import datetime, timedelta
from typing import ClassVar

from beanie import Document, Indexed
from pydantic import Field

from pourtrait.models._common import as_utc, utc_now


class LoginAttempt(Document):
    """One login attempt for an email address.

    MAX_FAILED_ATTEMPTS failures inside LOCKOUT_WINDOW_MINUTES lock the
    address for LOCKOUT_DURATION_MINUTES after the latest failure.
    """

    email: Indexed(str)
    attempted_at: datetime = Field(default_factory=utc_now)
    # Logged only; lockout is keyed on email
    ip_address: str | None = None
    failed: bool = True

    class Settings:
        name = "login_attempts"
        indexes = ["attempted_at"]

    MAX_FAILED_ATTEMPTS: ClassVar[int] = 5
    LOCKOUT_WINDOW_MINUTES: ClassVar[int] = 15
    LOCKOUT_DURATION_MINUTES: ClassVar[int] = 15

    @classmethod
    def _recent_failures(cls, email: str):
        window_start = utc_now() - timedelta(minutes=cls.LOCKOUT_WINDOW_MINUTES)
        return cls.find(
            cls.email == email.lower(),
            cls.failed == True,  # noqa: E712
            cls.attempted_at >= window_start,
        )

    @classmethod
    async def record_attempt(
        cls,
        email: str,
        failed: bool = True,
        ip_address: str | None = None,
    ) -> "LoginAttempt":
        attempt = cls(email=email.lower(), failed=failed, ip_address=ip_address)
        await attempt.insert()
        return attempt

    @classmethod
    async def is_locked_out(cls, email: str) -> bool:
        return await cls._recent_failures(email).count() >= cls.MAX_FAILED_ATTEMPTS

    @classmethod
    async def get_lockout_remaining_seconds(cls, email: str) -> int:
        """Seconds until the lockout lifts, 0 when the address is not locked."""
        failures = await cls._recent_failures(email).sort(-cls.attempted_at).to_list()
        if len(failures) < cls.MAX_FAILED_ATTEMPTS:
            return 0

        lockout_end = as_utc(failures[0].attempted_at) + timedelta(
            minutes=cls.LOCKOUT_DURATION_MINUTES
        )
        return max(0, int((lockout_end - utc_now()).total_seconds()))

    @classmethod
    async def clear_attempts(cls, email: str) -> int:
        result = await cls.find(cls.email == email.lower()).delete()
        return result.deleted_count if result else 0

    @classmethod
    async def cleanup_old_attempts(cls, older_than_hours: int = 24) -> int:
        cutoff = utc_now() - timedelta(hours=older_than_hours)
        result = await cls.find(cls.attempted_at < cutoff).delete()
        return result.deleted_count if result else 0
