import os

# Point the application at a throwaway database before settings are cached
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopbooks.main import app
from shopbooks.database import Base, get_db
from shopbooks.tasks.ledger_tasks import check_stock_level, notify_debt_settled
from shopbooks.utils.cache import cache_service


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def celery_tasks():
    """Keep Celery dispatch away from a real broker."""
    with patch.object(check_stock_level, "delay") as stock_check, \
            patch.object(notify_debt_settled, "delay") as settled:
        yield {"check_stock_level": stock_check, "notify_debt_settled": settled}


@pytest.fixture(autouse=True)
def redis_stub():
    """Replace the Redis connection with an always-empty in-process stub."""
    stub = MagicMock()
    stub.get.return_value = None
    with patch.object(cache_service, "client", stub):
        yield stub


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_product(client):
    """Create a product through the API and return its JSON."""
    def _make(**overrides):
        payload = {
            "shop_id": "shop-1",
            "name": "Sugar 1kg",
            "category": "Groceries",
            "cost_price": 100,
            "selling_price": 150,
            "stock": 10,
            "min_stock_alert": 2,
        }
        payload.update(overrides)
        response = client.post("/api/v1/products/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
