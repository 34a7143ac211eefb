"""Account endpoints: fastapi-users routers plus token, logout and password change."""

import logging
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from pourtrait.auth import (
    UserCreate,
    UserManager,
    UserRead,
    auth_backend,
    fastapi_users,
    get_user_manager,
)
from pourtrait.config import settings
from pourtrait.models._common import utc_now
from pourtrait.models.user import User
from pourtrait.services.analytics import posthog_service
from pourtrait.services.auth import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    RequireAuth,
    authenticate_user,
    create_access_token,
    get_password_hash,
    revoke_token,
    verify_password,
)

router = APIRouter()
security_logger = logging.getLogger("pourtrait.security")

limiter = Limiter(key_func=get_remote_address)

# POST /api/auth/login and /logout (fastapi-users flavour)
router.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/jwt")

if settings.registration_enabled:
    router.include_router(fastapi_users.get_register_router(UserRead, UserCreate))

router.include_router(fastapi_users.get_reset_password_router())

if settings.email_verification_required:
    router.include_router(fastapi_users.get_verify_router(UserRead))


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str | None
    experience_level: str | None
    onboarding_completed: bool
    is_active: bool
    is_admin: bool
    is_verified: bool
    created_at: datetime
    last_login: datetime | None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            full_name=user.full_name,
            experience_level=user.experience_level,
            onboarding_completed=user.onboarding_completed,
            is_active=user.is_active,
            is_admin=user.is_admin,
            is_verified=user.is_verified,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class AccountDeleteRequest(BaseModel):
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = ACCESS_TOKEN_EXPIRE_MINUTES * 60


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return None


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: RequireAuth) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.put("/password")
@limiter.limit("5/minute;20/hour")
async def change_password(
    request: Request,
    password_request: PasswordChangeRequest,
    current_user: RequireAuth,
) -> dict:
    """Change the current user's password and revoke the token used for the call."""
    if not verify_password(password_request.current_password, current_user.hashed_password):
        security_logger.warning(
            "Password change failed - invalid current password: user_id=%s, ip=%s",
            str(current_user.id),
            get_remote_address(request),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.hashed_password = get_password_hash(password_request.new_password)
    current_user.updated_at = utc_now()
    await current_user.save()

    token = _bearer_token(request)
    if token:
        await revoke_token(token=token, user_id=str(current_user.id), reason="password_change")

    security_logger.info(
        "Password changed: user_id=%s, ip=%s",
        str(current_user.id),
        get_remote_address(request),
    )
    return {"message": "Password updated successfully. Please log in again."}


@router.post("/logout")
async def logout(request: Request, current_user: RequireAuth) -> dict:
    """Revoke the bearer token so it cannot be used again."""
    token = _bearer_token(request)
    revoked = bool(token) and await revoke_token(
        token=token, user_id=str(current_user.id), reason="logout"
    )

    posthog_service.capture(distinct_id=str(current_user.id), event="user_logout")

    if token and not revoked:
        return {"message": "Logged out (token could not be revoked)"}
    return {"message": "Successfully logged out"}


@router.post("/token", response_model=Token)
@limiter.limit("30/minute;200/hour")
async def login_token(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> Token:
    """Exchange email and password for an access token.

    The OAuth2 form calls the field ``username``; it carries the email.
    """
    user = await authenticate_user(
        form_data.username, form_data.password, get_remote_address(request)
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if settings.email_verification_required and not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not verified. Please check your email for verification link.",
        )

    user.last_login = utc_now()
    await user.save()

    access_token = create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    posthog_service.capture(
        distinct_id=str(user.id),
        event="user_login",
        properties={"method": "password"},
    )
    return Token(access_token=access_token)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_account(
    request: Request,
    delete_request: AccountDeleteRequest,
    current_user: RequireAuth,
    user_manager: Annotated[UserManager, Depends(get_user_manager)],
) -> None:
    """Delete the account and every wine, profile and notification it owns.

    The password is required again so a stolen token cannot erase a cellar.
    """
    if not verify_password(delete_request.password, current_user.hashed_password):
        security_logger.warning(
            "Account deletion refused - invalid password: user_id=%s, ip=%s",
            str(current_user.id),
            get_remote_address(request),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password is incorrect",
        )

    token = _bearer_token(request)
    if token:
        await revoke_token(token=token, user_id=str(current_user.id), reason="account_deleted")

    await user_manager.delete(current_user, request=request)
    security_logger.info(
        "Account deleted: user_id=%s, ip=%s",
        str(current_user.id),
        get_remote_address(request),
    )
