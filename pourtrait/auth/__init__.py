"""fastapi-users wiring for Pourtrait accounts."""

from pourtrait.auth.backend import auth_backend
from pourtrait.auth.db import get_user_db
from pourtrait.auth.schemas import UserCreate, UserRead, UserUpdate
from pourtrait.auth.users import UserManager, fastapi_users, get_user_manager

__all__ = [
    "auth_backend",
    "get_user_db",
    "UserManager",
    "get_user_manager",
    "fastapi_users",
    "UserCreate",
    "UserRead",
    "UserUpdate",
]
