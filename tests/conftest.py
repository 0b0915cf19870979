"""
Pytest configuration and fixtures
"""

import os
import tempfile
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.orm import Session
from fastapi.testclient import TestClient

# Set test environment variables before importing app
_test_db_dir = tempfile.mkdtemp(prefix="copo-gateway-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(_test_db_dir, 'copo_gateway_test.db')}",
)
os.environ["JWT_SECRET"] = "test-jwt-secret-min-32-chars-for-testing-only"
os.environ["METRICS_PUBLIC"] = "true"
os.environ["HOST"] = "gateway.test"
os.environ["CALLBACK_BASE_URL"] = ""
os.environ["LOG_LEVEL"] = "DEBUG"

from copo_gateway.infrastructure.database import Base, SessionLocal, engine, get_db
from copo_gateway.main import app
from copo_gateway.core.transactions.models import Transaction, TransactionDirection
from copo_gateway.services import transaction_store
from copo_gateway.services.copo_client import CopoClient, get_copo_client
from tests.copo_utils import FakeCopo, TEST_MERCHANT_ID


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Create a fresh database session for each test.
    Clears all tables before and after each test.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def fake_copo() -> FakeCopo:
    """Fake Copo merchant API; inspect .requests, replace answers with .respond()"""
    return FakeCopo()


@pytest.fixture(scope="function")
def copo_client(fake_copo: FakeCopo) -> CopoClient:
    http_client = httpx.Client(transport=fake_copo.transport())
    try:
        yield CopoClient(base_url="https://copo.test", timeout=5.0, http_client=http_client)
    finally:
        http_client.close()


@pytest.fixture(scope="function")
def client(db_session: Session, copo_client: CopoClient):
    """
    Create FastAPI test client with dependency overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_copo_client] = lambda: copo_client

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def deposit_tx(db_session: Session) -> Transaction:
    """A PENDING deposit for 100.00"""
    return transaction_store.create_transaction(
        db=db_session,
        direction=TransactionDirection.DEPOSIT,
        site="production",
        amount=Decimal("100.00"),
        customer_id="player001",
        merchant_id=TEST_MERCHANT_ID,
    )


@pytest.fixture
def withdraw_tx(db_session: Session) -> Transaction:
    """A PENDING withdraw for 500.00"""
    return transaction_store.create_transaction(
        db=db_session,
        direction=TransactionDirection.WITHDRAW,
        site="production",
        amount=Decimal("500.00"),
        customer_id="player001",
        merchant_id=TEST_MERCHANT_ID,
        bank_name="KBANK",
        bank_account="1234567890",
        bank_account_name="Somchai Jaidee",
    )
