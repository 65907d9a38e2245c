"""
Pytest configuration and shared test helpers for backend tests.
"""
import hashlib
import hmac
import os
import time

# Skip MongoDB connection in the app lifespan when running under pytest.
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("AUTH_JWT_SECRET", "test-session-secret")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from database import get_database, get_transaction_factory
from models import UserRole
from server import app
from support.memory_db import MemoryDatabase

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def memory_db():
    return MemoryDatabase()


@pytest.fixture
def client(memory_db):
    """TestClient for server:app with the database dependencies pointed at memory_db."""
    app.dependency_overrides[get_database] = lambda: memory_db
    app.dependency_overrides[get_transaction_factory] = lambda: memory_db.transaction
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    return WEBHOOK_SECRET


def auth_headers(sub: str, email: str, **claims) -> dict:
    """Bearer header for a provider session token."""
    token = create_access_token({"sub": sub, "email": email, **claims})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers():
    return auth_headers("ext_owner", "owner@example.com", first_name="Olive", last_name="Owner")


@pytest.fixture
def other_headers():
    return auth_headers("ext_other", "other@example.com")


@pytest.fixture
def admin_headers(monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com")
    return auth_headers("ext_admin", "boss@example.com")


# Actors as returned by require_auth, for service-level tests
@pytest.fixture
def owner():
    return {"user_id": "user-owner", "email": "owner@example.com", "role": UserRole.USER.value}


@pytest.fixture
def stranger():
    return {"user_id": "user-stranger", "email": "stranger@example.com", "role": UserRole.USER.value}


@pytest.fixture
def admin():
    return {"user_id": "user-admin", "email": "admin@example.com", "role": UserRole.ADMIN.value}


def sign(payload: str, secret: str, timestamp: int = None) -> str:
    """Stripe-Signature header value for a payload (v1 scheme)."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def future_date(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).date().isoformat()


def project_payload(**overrides) -> dict:
    """Valid camelCase project submission (BUSINESS, 5 pages, 3 features -> 3000)."""
    payload = {
        "businessName": "Sample Business",
        "industry": "Technology",
        "websiteType": "BUSINESS",
        "features": ["Responsive Design", "SEO Optimization", "Contact Forms"],
        "numberOfPages": 5,
        "deadline": future_date(),
        "budget": 3000,
    }
    payload.update(overrides)
    return payload
