"""
Shared pytest fixtures.

The document store is an in-memory mongomock client and the payment gateway is
a MagicMock; both are injected through create_app(), so no test needs a real
MongoDB or Stripe account.
"""

import os

# Must be set before any application module reads the settings
os.environ["ACCESS_TOKEN_SECRET"] = "test-secret-not-real"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import MagicMock

import mongomock
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config import settings
from database import Stores
from payments import PaymentGateway
from security import issue_token

ADMIN_EMAIL = "admin@example.com"
USER_EMAIL = "user@example.com"


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def stores(mongo_client):
    return Stores.from_client(mongo_client, settings)


@pytest.fixture
def payment_gateway():
    gateway = MagicMock(spec=PaymentGateway)
    gateway.create_intent.return_value = "pi_123_secret_456"
    return gateway


@pytest.fixture
def admin_user(stores):
    stores.users.insert_one({"email": ADMIN_EMAIL, "name": "Admin", "role": "admin"})
    return ADMIN_EMAIL


@pytest.fixture
def normal_user(stores):
    stores.users.insert_one({"email": USER_EMAIL, "name": "Rahim", "role": "NormalUser"})
    return USER_EMAIL


@pytest.fixture
def token_for():
    """Signed session token for any email."""
    return issue_token


@pytest_asyncio.fixture
async def test_client(stores, payment_gateway):
    """
    HTTPX AsyncClient wired straight to the ASGI app.

    Usage:
        async def test_root(test_client):
            response = await test_client.get("/")
    """
    from main import create_app

    app = create_app(stores=stores, payment_gateway=payment_gateway)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
