"""fastapi-users manager: account emails, onboarding analytics and account deletion."""

import hashlib
import logging
from collections.abc import AsyncGenerator
from typing import Optional

from beanie import PydanticObjectId
from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers
from fastapi_users_db_beanie import BeanieUserDatabase, ObjectIDIDMixin

from pourtrait.auth.backend import auth_backend
from pourtrait.auth.db import get_user_db
from pourtrait.config import settings
from pourtrait.models._common import utc_now
from pourtrait.models.user import User
from pourtrait.services.account import purge_user_data
from pourtrait.services.analytics import posthog_service
from pourtrait.services.email import get_email_service

logger = logging.getLogger(__name__)


def _token_secret(purpose: str) -> str:
    # Reset and verification links never validate as access tokens
    return hashlib.sha256(f"{settings.secret_key}:{purpose}".encode()).hexdigest()


class UserManager(ObjectIDIDMixin, BaseUserManager[User, PydanticObjectId]):
    reset_password_token_secret = _token_secret("reset_password")
    verification_token_secret = _token_secret("verification")

    async def on_after_register(self, user: User, request: Optional[Request] = None) -> None:
        """Start the onboarding funnel and send the verification link when required."""
        logger.info("User registered (id=%s)", user.id)
        posthog_service.identify(distinct_id=str(user.id), properties={"email": user.email})
        posthog_service.capture(
            distinct_id=str(user.id),
            event="user_registered",
            properties={"onboarding_completed": user.onboarding_completed},
        )

        if settings.email_verification_required and not user.is_verified:
            await self.request_verify(user, request)

    async def on_after_request_verify(
        self, user: User, token: str, request: Optional[Request] = None
    ) -> None:
        if not await get_email_service().send_verification_email(to_email=user.email, token=token):
            logger.error("Verification email not delivered (user=%s)", user.id)

    async def on_after_verify(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("User verified (id=%s)", user.id)

    async def on_after_forgot_password(
        self, user: User, token: str, request: Optional[Request] = None
    ) -> None:
        if not await get_email_service().send_password_reset_email(to_email=user.email, token=token):
            logger.error("Password reset email not delivered (user=%s)", user.id)

    async def on_after_reset_password(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("Password reset completed (user=%s)", user.id)

    async def on_after_login(
        self,
        user: User,
        request: Optional[Request] = None,
        response: Optional[object] = None,
    ) -> None:
        await self.user_db.update(user, {"last_login": utc_now()})
        posthog_service.capture(
            distinct_id=str(user.id),
            event="user_login",
            properties={"method": "fastapi_users", "onboarding_completed": user.onboarding_completed},
        )

    async def on_before_delete(self, user: User, request: Optional[Request] = None) -> None:
        """Remove the cellar, profiles, recommendations and notifications first."""
        await purge_user_data(user.id)

    async def on_after_delete(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("Account deleted (id=%s)", user.id)
        posthog_service.capture(distinct_id=str(user.id), event="account_deleted")


async def get_user_manager(
    user_db: BeanieUserDatabase = Depends(get_user_db),
) -> AsyncGenerator[UserManager, None]:
    yield UserManager(user_db)


fastapi_users = FastAPIUsers[User, PydanticObjectId](get_user_manager, [auth_backend])
