"""Revoked JWT tokens, kept until their natural expiry."""

from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field

from pourtrait.models._common import utc_now


class RevokedToken(Document):
    """A JWT (by ``jti`` claim) that must no longer be accepted."""

    jti: Indexed(str, unique=True)
    revoked_at: datetime = Field(default_factory=utc_now)
    # Rows past this point are purged by the hourly clean-up task
    expires_at: Indexed(datetime)
    user_id: str | None = None
    reason: str = "logout"

    class Settings:
        name = "revoked_tokens"

    @classmethod
    async def is_revoked(cls, jti: str) -> bool:
        return await cls.find_one(cls.jti == jti) is not None

    @classmethod
    async def revoke_token(
        cls,
        jti: str,
        expires_at: datetime,
        user_id: str | None = None,
        reason: str = "logout",
    ) -> "RevokedToken":
        """Add a token to the blacklist.

        Revoking an already revoked token returns the existing row.
        """
        existing = await cls.find_one(cls.jti == jti)
        if existing:
            return existing
        token = cls(jti=jti, expires_at=expires_at, user_id=user_id, reason=reason)
        await token.insert()
        return token

    @classmethod
    async def cleanup_expired(cls) -> int:
        """Remove expired tokens from the blacklist.

        Returns:
            Number of tokens removed.
        """
        result = await cls.find(cls.expires_at < utc_now()).delete()
        return result.deleted_count if result else 0
