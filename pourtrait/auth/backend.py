"""Bearer/JWT backend behind the fastapi-users routes mounted at /api/auth/jwt."""

from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
    JWTStrategy,
)

from pourtrait.config import settings

# OpenAPI "Authorize" posts the OAuth2 form to the rate-limited token endpoint
bearer_transport = BearerTransport(tokenUrl="/api/auth/token")


def get_jwt_strategy() -> JWTStrategy:
    # services.auth imports the models, which import config
    from pourtrait.services.auth import ALGORITHM, TOKEN_LIFETIME_SECONDS

    return JWTStrategy(
        secret=settings.secret_key,
        lifetime_seconds=TOKEN_LIFETIME_SECONDS,
        algorithm=ALGORITHM,
    )


auth_backend = AuthenticationBackend(name="jwt", transport=bearer_transport, get_strategy=get_jwt_strategy)
