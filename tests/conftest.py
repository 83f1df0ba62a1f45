# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock
from typing import Generator

from main import create_app
from dependencies.auth import CurrentUser, get_current_user
from dependencies.services import (
    get_grant_access_engine,
    get_payment_admin_service,
    get_payment_gateway,
    get_visibility_service,
)
from services.grant_access import GrantAccessEngine, GrantAccessPolicy
from services.grant_access_notifier import GrantAccessNotifier
from services.payment_admin import PaymentAdminService
from services.visibility import VisibilityService
from core.stripe_helpers import StripePaymentGateway
from fakes import (
    WEBHOOK_SECRET,
    FakeAccessRepository,
    FakeDirectory,
    FakeDispatcher,
    FakeGateway,
    FakeListingStore,
)


@pytest.fixture
def policy():
    return GrantAccessPolicy(
        currency="USD",
        max_payment_attempts=3,
        payment_link_valid_days=7,
        admin_email="admin@premarket.test",
        admin_user_id="admin-1",
        support_email="support@premarket.test",
        client_url="https://app.premarket.test",
    )


@pytest.fixture
def repository():
    return FakeAccessRepository()


@pytest.fixture
def listings():
    store = FakeListingStore()
    store.add_listing("L1", renter_id="renter-1")
    store.add_listing("L-inactive", is_active=False)
    return store


@pytest.fixture
def directory():
    d = FakeDirectory()
    d.add_agent("A1")
    d.add_agent("A2")
    d.add_agent("G1", has_grant_access=True)
    d.add_renter("renter-1")
    return d


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def alert():
    return Mock()


@pytest.fixture
def engine(repository, listings, directory, gateway, dispatcher, policy, alert):
    notifier = GrantAccessNotifier(dispatcher, listings, directory, policy)
    return GrantAccessEngine(
        repository=repository,
        listings=listings,
        directory=directory,
        gateway=gateway,
        notifier=notifier,
        policy=policy,
        alert=alert,
    )


@pytest.fixture
def visibility(repository, listings, directory):
    return VisibilityService(repository, listings, directory)


@pytest.fixture
def admin_service(repository, listings, directory):
    return PaymentAdminService(repository, listings, directory, bulk_delete_limit=100, currency="USD")


# -----------------------------------------------------
# HTTP
# -----------------------------------------------------
@pytest.fixture
def webhook_gateway():
    """Real Stripe adapter so signatures are verified end to end."""
    return StripePaymentGateway(secret_key="sk_test_123", webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def admin_user():
    return CurrentUser(id="admin-1", email="admin@premarket.test", role="admin")


@pytest.fixture
def agent_user():
    return CurrentUser(id="A1", email="A1@agents.test", role="agent")


@pytest.fixture(scope="function")
def app(engine, visibility, admin_service, webhook_gateway):
    """FastAPI app with every service swapped for the in-memory world."""
    app = create_app()
    app.dependency_overrides[get_grant_access_engine] = lambda: engine
    app.dependency_overrides[get_visibility_service] = lambda: visibility
    app.dependency_overrides[get_payment_admin_service] = lambda: admin_service
    app.dependency_overrides[get_payment_gateway] = lambda: webhook_gateway
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(app):
    """Switch the authenticated user for subsequent requests."""
    def _login(user: CurrentUser):
        app.dependency_overrides[get_current_user] = lambda: user
    return _login


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = Mock()
    mock_table = Mock()
    mock_client.table.return_value = mock_table
    return mock_client
