"""Authentication service: password hashing, JWTs and request guards."""

import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pwdlib import PasswordHash
from pwdlib.hashers.argon2 import Argon2Hasher

from pourtrait.config import settings
from pourtrait.models.login_attempt import LoginAttempt
from pourtrait.models.token_blacklist import RevokedToken
from pourtrait.models.user import User

# Security event logger
security_logger = logging.getLogger("pourtrait.security")

# Argon2 matches the fastapi-users default hasher
password_hash = PasswordHash((Argon2Hasher(),))

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

# JWT settings - single source of truth for token lifetime
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 120
TOKEN_LIFETIME_SECONDS = ACCESS_TOKEN_EXPIRE_MINUTES * 60


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_hash.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return password_hash.hash(password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token carrying a unique ``jti`` for revocation."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "jti": str(uuid.uuid4())})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


async def get_user_by_email(email: str) -> User | None:
    return await User.find_one(User.email == email)


async def authenticate_user(
    email: str,
    password: str,
    ip_address: str | None = None,
) -> User | None:
    """Authenticate a user with email and password.

    Args:
        email: User's email address.
        password: Plain text password.
        ip_address: Client IP address for logging.

    Returns:
        User if authentication successful, None otherwise.

    Raises:
        HTTPException: 429 while the address is locked out.
    """
    client_ip = ip_address or "unknown"

    if await LoginAttempt.is_locked_out(email):
        remaining = await LoginAttempt.get_lockout_remaining_seconds(email)
        security_logger.warning(
            "Login attempt blocked - account locked: email=%s, ip=%s, remaining_seconds=%d",
            email,
            client_ip,
            remaining,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Account temporarily locked. Try again in {remaining // 60 + 1} minutes.",
            headers={"Retry-After": str(remaining)},
        )

    user = await get_user_by_email(email)
    failure: str | None = None
    if not user:
        failure = "user not found"
    elif not verify_password(password, user.hashed_password):
        failure = "invalid password"
    elif not user.is_active:
        failure = "inactive account"

    if failure:
        await LoginAttempt.record_attempt(email, failed=True, ip_address=ip_address)
        security_logger.warning("Failed login - %s: email=%s, ip=%s", failure, email, client_ip)
        return None

    await LoginAttempt.clear_attempts(email)
    security_logger.info("Successful login: user_id=%s, ip=%s", str(user.id), client_ip)
    return user


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> User | None:
    """Resolve the user behind a bearer token.

    The ``sub`` claim may hold an email or a user id. Revoked tokens and
    inactive users resolve to None.
    """
    if not token:
        return None

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    subject: str | None = payload.get("sub")
    if subject is None:
        return None

    jti: str | None = payload.get("jti")
    if jti and await RevokedToken.is_revoked(jti):
        return None

    user = await get_user_by_email(subject)
    if user is None:
        try:
            user = await User.get(PydanticObjectId(subject))
        except (InvalidId, TypeError, ValueError):
            user = None

    if user is None or not user.is_active:
        return None

    return user


async def require_auth(
    user: Annotated[User | None, Depends(get_current_user)],
) -> User:
    """Require authentication - raises 401 if not authenticated."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(
    user: Annotated[User, Depends(require_auth)],
) -> User:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return user


def secret_matches(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset secret never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def is_cron_authorized(authorization: str | None) -> bool:
    """Check an ``Authorization: Bearer <cron secret>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        return False
    return secret_matches(authorization[len("Bearer "):], settings.cron_secret)


async def require_cron(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for scheduler-only endpoints."""
    if not is_cron_authorized(authorization):
        security_logger.warning("Rejected scheduler call: bad or missing bearer secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def revoke_token(token: str, user_id: str | None = None, reason: str = "logout") -> bool:
    """Revoke a JWT by adding its ``jti`` to the blacklist.

    Returns:
        True if token was successfully revoked, False otherwise.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        security_logger.warning("Token revocation failed - invalid JWT: user_id=%s", user_id)
        return False

    jti: str | None = payload.get("jti")
    exp: int | None = payload.get("exp")
    if not jti or not exp:
        return False

    await RevokedToken.revoke_token(
        jti=jti,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        user_id=user_id,
        reason=reason,
    )
    security_logger.info(
        "Token revoked: user_id=%s, reason=%s, jti=%s",
        user_id or "unknown",
        reason,
        jti,
    )
    return True


# Type aliases for dependency injection
CurrentUser = Annotated[User | None, Depends(get_current_user)]
RequireAuth = Annotated[User, Depends(require_auth)]
RequireAdmin = Annotated[User, Depends(require_admin)]
RequireCron = Depends(require_cron)
