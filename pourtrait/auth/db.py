"""Database adapter for fastapi-users."""

from collections.abc import AsyncGenerator

from fastapi_users_db_beanie import BeanieUserDatabase

from pourtrait.models.user import User


async def get_user_db() -> AsyncGenerator[BeanieUserDatabase, None]:
    """Yield the Beanie user database adapter."""
    yield BeanieUserDatabase(User)
