"""Account schemas for fastapi-users with MongoDB/Beanie."""

from datetime import datetime
from typing import Literal

from beanie import PydanticObjectId
from fastapi_users import schemas
from pydantic import ConfigDict

ExperienceLevel = Literal["beginner", "intermediate", "advanced"]


class UserRead(schemas.BaseUser[PydanticObjectId]):
    """Account as returned to its owner."""

    full_name: str | None = None
    experience_level: ExperienceLevel | None = None
    onboarding_completed: bool = False
    created_at: datetime
    last_login: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserCreate(schemas.BaseUserCreate):
    full_name: str | None = None
    experience_level: ExperienceLevel | None = None


class UserUpdate(schemas.BaseUserUpdate):
    full_name: str | None = None
    experience_level: ExperienceLevel | None = None
