"""
User provisioning and session token tests.
"""
from datetime import timedelta

import pytest
from jose import jwt

from auth import create_access_token, decode_access_token, identity_from_claims
from services.user_service import UserService
from support.memory_db import MemoryDatabase


def _identity(external_id="ext_1", email="new@example.com", **extra):
    return {"external_id": external_id, "email": email, **extra}


class TestGetOrCreate:

    @pytest.mark.asyncio
    async def test_first_sight_creates_user(self, monkeypatch):
        monkeypatch.delenv("ADMIN_EMAILS", raising=False)
        db = MemoryDatabase()
        user = await UserService(db).get_or_create(_identity(first_name="Ada", last_name="Lovelace"))

        assert user["role"] == "USER"
        assert user["first_name"] == "Ada"
        assert "_id" not in user
        assert len(db.users.all()) == 1
        assert [a["action"] for a in db.audit_logs.all()] == ["USER_CREATED"]

    @pytest.mark.asyncio
    async def test_second_request_returns_same_user(self):
        db = MemoryDatabase()
        service = UserService(db)
        first = await service.get_or_create(_identity())
        second = await service.get_or_create(_identity())
        assert first["user_id"] == second["user_id"]
        assert len(db.users.all()) == 1

    @pytest.mark.asyncio
    async def test_admin_emails_bootstrap_admin_role(self, monkeypatch):
        monkeypatch.setenv("ADMIN_EMAILS", "Ops@Example.com, boss@example.com")
        user = await UserService(MemoryDatabase()).get_or_create(_identity(email="ops@example.com"))
        assert user["role"] == "ADMIN"

    @pytest.mark.asyncio
    async def test_seeded_row_is_linked_by_email(self):
        db = MemoryDatabase()
        db.users.add({"user_id": "seeded-1", "email": "seeded@example.com", "external_id": None, "role": "ADMIN"})

        user = await UserService(db).get_or_create(_identity(external_id="ext_seeded", email="seeded@example.com"))
        assert user["user_id"] == "seeded-1"
        assert user["role"] == "ADMIN"
        assert db.users.all()[0]["external_id"] == "ext_seeded"


class TestSessionTokens:

    def test_round_trip_claims(self):
        claims = decode_access_token(create_access_token({"sub": "ext_1", "email": "A@Example.com"}))
        identity = identity_from_claims(claims)
        assert identity["external_id"] == "ext_1"
        assert identity["email"] == "a@example.com"

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "ext_1", "email": "a@example.com"}, expires_delta=timedelta(seconds=-5))
        assert decode_access_token(token) is None

    def test_garbage_token_rejected(self):
        assert decode_access_token("not-a-jwt") is None

    def test_claims_without_email_have_no_identity(self):
        assert identity_from_claims({"sub": "ext_1"}) is None


class TestMissingSessionKey:
    """Without a configured key no token verifies, outside development."""

    def _unset_keys(self, monkeypatch):
        monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)
        monkeypatch.delenv("AUTH_JWT_PUBLIC_KEY", raising=False)

    def test_token_rejected_when_no_key_configured(self, monkeypatch):
        self._unset_keys(monkeypatch)
        monkeypatch.setenv("ENVIRONMENT", "production")
        token = jwt.encode({"sub": "ext_1", "email": "a@example.com"}, "your-secret-key-change-in-production")
        assert decode_access_token(token) is None

    def test_create_token_refuses_without_key(self, monkeypatch):
        self._unset_keys(monkeypatch)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        with pytest.raises(RuntimeError):
            create_access_token({"sub": "ext_1", "email": "a@example.com"})

    def test_development_uses_dev_secret(self, monkeypatch):
        self._unset_keys(monkeypatch)
        monkeypatch.setenv("ENVIRONMENT", "development")
        token = create_access_token({"sub": "ext_1", "email": "a@example.com"})
        assert decode_access_token(token)["sub"] == "ext_1"
