"""Pytest configuration and fixtures for Pourtrait tests with real MongoDB."""

import asyncio
import json
import os
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from motor.motor_asyncio import AsyncIOMotorClient

from pourtrait.config import get_settings
from pourtrait.database import get_document_models
from pourtrait.models import User
from pourtrait.services.auth import create_access_token, get_password_hash


# MongoDB connection URL for tests (can be overridden with env var)
TEST_MONGODB_URL = os.environ.get("TEST_MONGODB_URL", "mongodb://localhost:27017")

TEST_CRON_SECRET = "test-cron-secret"
TEST_INGEST_KEY = "test-ingest-key"


def create_test_app():
    """Create a FastAPI app configured for testing (no database lifespan)."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError
    from slowapi import _rate_limit_exceeded_handler
    from slowapi.errors import RateLimitExceeded

    from pourtrait import __version__
    from pourtrait.main import app as main_app, unhandled_error_handler, validation_error_handler

    # Empty lifespan for testing - we manage the database ourselves
    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    test_app = FastAPI(
        title="Pourtrait Test",
        version=__version__,
        lifespan=test_lifespan,
    )
    test_app.state.limiter = main_app.state.limiter
    test_app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    test_app.add_exception_handler(RequestValidationError, validation_error_handler)
    test_app.add_exception_handler(Exception, unhandled_error_handler)

    for route in main_app.routes:
        test_app.routes.append(route)

    return test_app


_test_app = None


def get_test_app():
    """Get the test app singleton."""
    global _test_app
    if _test_app is None:
        _test_app = create_test_app()
    return _test_app


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use the default event loop policy."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def test_secrets(monkeypatch):
    """Known scheduler and ingest secrets for every test."""
    secrets = get_settings().secrets
    monkeypatch.setattr(secrets, "cron_secret", TEST_CRON_SECRET)
    monkeypatch.setattr(secrets, "metrics_ingest_key", TEST_INGEST_KEY)
    monkeypatch.setattr(secrets, "anthropic_api_key", None)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


@pytest_asyncio.fixture(scope="function")
async def mongo_client():
    """Function-scoped Motor client; Motor pools connections internally."""
    client = AsyncIOMotorClient(
        TEST_MONGODB_URL,
        maxPoolSize=10,
        minPoolSize=1,
        tz_aware=True,
    )
    yield client
    client.close()


@pytest_asyncio.fixture(scope="function")
async def init_test_db(mongo_client):
    """Initialize Beanie with a unique test database, dropped afterwards."""
    db_name = f"test_pourtrait_{uuid.uuid4().hex[:8]}"
    db = mongo_client[db_name]

    await init_beanie(
        database=db,
        document_models=get_document_models(),
    )
    yield db

    await mongo_client.drop_database(db_name)


@pytest_asyncio.fixture(scope="function")
async def test_user_doc(init_test_db) -> User:
    """The stored user behind the ``client`` fixture."""
    user = User(
        email="test@example.com",
        hashed_password=get_password_hash("testpassword"),
        is_active=True,
        is_verified=True,
        is_superuser=False,
    )
    await user.insert()
    return user


@pytest_asyncio.fixture(scope="function")
async def client(test_user_doc) -> AsyncGenerator[AsyncClient, None]:
    """Async test client authenticated as ``test_user_doc``."""
    access_token = create_access_token(data={"sub": test_user_doc.email})

    transport = ASGITransport(app=get_test_app())
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {access_token}"},
    ) as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def admin_client(init_test_db) -> AsyncGenerator[AsyncClient, None]:
    """Async test client authenticated as a superuser."""
    admin = User(
        email="admin@example.com",
        hashed_password=get_password_hash("adminpassword"),
        is_active=True,
        is_verified=True,
        is_superuser=True,
    )
    await admin.insert()
    access_token = create_access_token(data={"sub": admin.email})

    transport = ASGITransport(app=get_test_app())
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {access_token}"},
    ) as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def unauthenticated_client(init_test_db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client without authentication."""
    transport = ASGITransport(app=get_test_app())
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def test_user() -> dict:
    """Return test user credentials."""
    return {
        "email": "test@example.com",
        "password": "testpassword",
    }


@pytest.fixture
def mock_email_service():
    """Mock email service to prevent actual email sending in tests."""
    with patch("pourtrait.auth.users.get_email_service") as mock:
        mock_service = AsyncMock()
        mock_service.send_verification_email = AsyncMock(return_value=True)
        mock_service.send_password_reset_email = AsyncMock(return_value=True)
        mock.return_value = mock_service
        yield mock_service


# A mapped profile for answers that favour crisp, unoaked whites
CRISP_WHITE_PROFILE = {
    "userId": "ignored",
    "stablePalate": {
        "sweetness": 0.2,
        "acidity": 0.8,
        "tannin": 0.2,
        "bitterness": 0.2,
        "body": 0.35,
        "alcoholWarmth": 0.3,
        "sparkleIntensity": 0.5,
    },
    "aromaAffinities": [
        {"family": "citrus", "affinity": 0.8},
        {"family": "oak_vanilla_smoke", "affinity": -0.7},
    ],
    "styleLevers": {
        "oak": 0.1,
        "malolacticButter": 0.1,
        "oxidative": 0.1,
        "minerality": 0.7,
        "fruitRipeness": 0.4,
    },
    "contextWeights": [
        {"occasion": "seafood_sushi", "weights": {"white": 0.9}},
        {"occasion": "aperitif", "weights": {"sparkling": 0.7}},
    ],
    "foodProfile": {
        "heatLevel": 1,
        "salt": 0.5,
        "fat": 0.3,
        "sauceSweetness": 0.2,
        "sauceAcidity": 0.6,
        "cuisines": ["japanese"],
        "proteins": ["fish"],
    },
    "preferences": {"novelty": 0.6, "budgetTier": "weekend", "values": []},
    "dislikes": ["oaky", "buttery"],
    "sparkling": {"drynessBand": "brut", "bubbleIntensity": 0.5},
    "wineKnowledge": "intermediate",
    "flavorMaps": {
        "white": {"acidity": 0.8, "body": 0.35, "oak": 0.1, "fruitRipeness": 0.4},
    },
}


def anthropic_reply(text: str) -> SimpleNamespace:
    """Shape of an Anthropic Messages reply carrying one text block."""
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def fake_llm():
    """Stub the Anthropic client used by the profile mapper.

    ``fake_llm.replies`` is consumed in order; each entry is reply text or
    an exception to raise.
    """
    state = SimpleNamespace(replies=[json.dumps(CRISP_WHITE_PROFILE)], calls=[])

    async def create(**kwargs):
        state.calls.append(kwargs)
        reply = state.replies.pop(0) if len(state.replies) > 1 else state.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return anthropic_reply(reply)

    fake_client = SimpleNamespace(messages=SimpleNamespace(create=create))
    with (
        patch("pourtrait.services.profile.mapper.get_anthropic_client", return_value=fake_client),
        patch("pourtrait.services.profile.mapper.is_available", return_value=True),
    ):
        yield state


@pytest.fixture
def wine_payload():
    """Build a valid create-wine body; keyword arguments override fields."""

    def build(**overrides) -> dict:
        payload = {
            "name": "Sancerre Les Romains",
            "producer": "Domaine Vacheron",
            "vintage": 2021,
            "region": "Loire Valley",
            "country": "France",
            "varietal": ["Sauvignon Blanc"],
            "type": "white",
            "quantity": 2,
            "purchase_price": 45.0,
        }
        payload.update(overrides)
        return payload

    return build
