"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.dependencies import (
    get_earn_sync_service,
    get_holdings_sync_service,
    get_price_resolver,
)
from database import Base, get_db
from main import app
from services.earn_sync_service import EarnSyncService
from services.holdings_sync_service import HoldingsSyncService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    holding,
    other_user,
    portfolio,
    user,
)
from tests.fixtures.mocks import (
    SAMPLE_BALANCES,
    SAMPLE_EARN_POSITIONS,
    SAMPLE_PRICES,
    SAMPLE_REWARDS,
    MockExchangeClient,
    MockPriceResolver,
)


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_exchange")
def mock_exchange_fixture():
    """Mock exchange with sample balances, earn positions and rewards."""
    return MockExchangeClient(
        balances=list(SAMPLE_BALANCES),
        positions=list(SAMPLE_EARN_POSITIONS),
        rewards=list(SAMPLE_REWARDS),
    )


@pytest.fixture(name="mock_prices")
def mock_prices_fixture():
    """Mock price resolver with sample prices."""
    return MockPriceResolver(prices=dict(SAMPLE_PRICES))


def _install_overrides(db, exchange, prices):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_price_resolver] = lambda: prices
    app.dependency_overrides[get_holdings_sync_service] = lambda: HoldingsSyncService(
        exchange_client=exchange, price_resolver=prices
    )
    app.dependency_overrides[get_earn_sync_service] = lambda: EarnSyncService(
        exchange_client=exchange
    )


@pytest.fixture(name="client")
def client_fixture(db, user, mock_prices):
    """Create a test client with the test database and an empty exchange."""
    _install_overrides(db, MockExchangeClient(), mock_prices)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_with_mock_sync")
def client_with_mock_sync_fixture(db, user, mock_exchange, mock_prices):
    """Create a test client whose sync services see the sample exchange data."""
    _install_overrides(db, mock_exchange, mock_prices)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_with_failing_sync")
def client_with_failing_sync_fixture(db, user, mock_prices):
    """Create a test client whose exchange always fails."""
    failing = MockExchangeClient(should_fail=True, failure_message="Binance API unavailable")
    _install_overrides(db, failing, mock_prices)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_with_auth_failure")
def client_with_auth_failure_fixture(db, user, mock_prices):
    """Create a test client whose exchange rejects the API credentials."""
    failing = MockExchangeClient(should_fail=True, failure_type="auth")
    _install_overrides(db, failing, mock_prices)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
