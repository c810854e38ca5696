import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Callable, Generator

from main import app
from app.core.rate_limit import auth_rate_limiter
from app.db.base import Base
from app.db.session import get_db


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fresh_state() -> Generator:
    """Every test starts with empty tables and empty rate limit counters"""
    Base.metadata.create_all(bind=engine)
    auth_rate_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client() -> TestClient:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """A session bound to the test database, for service level tests"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def session_factory() -> sessionmaker:
    return TestingSessionLocal


@pytest.fixture
def wallet():
    """A fresh Ethereum account that can sign challenges"""
    return Account.create()


@pytest.fixture
def other_wallet():
    return Account.create()


@pytest.fixture
def sign_message() -> Callable:
    """Sign text the way a browser wallet does for personal_sign"""

    def _sign(account, message: str) -> str:
        signed = account.sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()

    return _sign


@pytest.fixture
def login(client: TestClient, sign_message: Callable) -> Callable:
    """Run the full nonce -> sign -> verify flow, return the session signature"""

    def _login(account) -> str:
        challenge = client.post("/api/auth/nonce", json={"address": account.address}).json()
        signature = sign_message(account, challenge["message"])
        response = client.post(
            "/api/auth/verify",
            json={"address": account.address, "signature": signature},
        )
        assert response.status_code == 200, response.text
        return signature

    return _login
