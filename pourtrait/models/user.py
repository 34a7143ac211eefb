"""User document model for authentication with fastapi-users integration."""

from datetime import datetime
from typing import Any, Literal, Optional

from beanie import Document, Indexed
from pydantic import Field

from pourtrait.models._common import utc_now

ExperienceLevel = Literal["beginner", "intermediate", "advanced"]


class User(Document):
    """User document model.

    Compatible with fastapi-users BeanieUserDatabase. Besides the
    fastapi-users fields it carries the onboarding state and the
    notification preferences, which are stored as the validated JSON
    object the preferences endpoint accepts.
    """

    # Required fields for fastapi-users
    email: Indexed(str, unique=True)
    hashed_password: str
    is_active: bool = True
    is_superuser: bool = False
    is_verified: bool = False

    full_name: Optional[str] = None
    experience_level: Optional[ExperienceLevel] = None
    onboarding_completed: bool = False
    notification_preferences: Optional[dict[str, Any]] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_login: Optional[datetime] = None

    class Settings:
        name = "users"
        use_state_management = True
        email_collation = None  # Use default case-insensitive collation

    @property
    def is_admin(self) -> bool:
        return self.is_superuser

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, is_active={self.is_active})>"
