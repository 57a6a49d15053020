from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from auth import dependencies, repository, schemas, security, service


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("JWT_ALG", "HS256")


def test_access_token_round_trip():
    token = security.build_access_token(user_id=5, username="reader", role=security.ROLE_NORMAL)

    claims = security.decode_access_token(token)

    assert claims == security.AccessClaims(user_id=5, username="reader", role="normal")


def test_expired_token_is_rejected():
    token = security.build_access_token(user_id=5, username="reader", role="normal", now=0)

    with pytest.raises(security.AuthSecurityError, match="expired"):
        security.decode_access_token(token)


def test_token_signed_with_other_secret_is_rejected():
    token = jwt.encode({"sub": "5", "type": "access", "exp": 2**31}, "other-secret", algorithm="HS256")

    with pytest.raises(security.AuthSecurityError, match="Invalid"):
        security.decode_access_token(token)


def test_non_access_token_is_rejected():
    token = jwt.encode({"sub": "5", "type": "refresh", "exp": 2**31}, "test-secret", algorithm="HS256")

    with pytest.raises(security.AuthSecurityError):
        security.decode_access_token(token)


def test_password_hashing():
    hashed = security.hash_password("correct horse")

    assert security.verify_password("correct horse", hashed)
    assert not security.verify_password("wrong horse", hashed)
    assert not security.verify_password("correct horse", "not-a-bcrypt-hash")


def test_refresh_token_digest_matches_raw_value():
    raw, digest = security.new_refresh_token()

    assert security.hash_refresh_token(raw) == digest
    assert raw not in digest


@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer ", "Bearer"])
def test_malformed_authorization_header(header):
    with pytest.raises(HTTPException) as excinfo:
        dependencies.parse_bearer_header(header)

    assert excinfo.value.status_code == 401


def test_bearer_scheme_is_case_insensitive():
    assert dependencies.parse_bearer_header("bearer abc.def") == "abc.def"


@pytest.mark.asyncio
async def test_require_admin():
    admin = {"id": 1, "role": "admin"}

    assert await dependencies.require_admin(admin) is admin
    with pytest.raises(HTTPException) as excinfo:
        await dependencies.require_admin({"id": 2, "role": "normal"})
    assert excinfo.value.status_code == 403


def test_protected_route_without_token_is_401(app, client):
    app.dependency_overrides.pop(dependencies.get_current_user)

    resp = client.get("/api/v1/games")

    assert resp.status_code == 401


def test_me_returns_profile_without_password(client):
    resp = client.get("/api/v1/me")

    assert resp.status_code == 200
    assert resp.json()["username"] == "admin"
    assert "password_hash" not in resp.json()


@pytest.mark.asyncio
async def test_register_gives_normal_role(monkeypatch):
    created = {}
    now = datetime.now(timezone.utc)

    async def taken(*, username, email):
        return False

    async def create_user(*, username, email, password_hash, role):
        created.update(username=username, role=role, password_hash=password_hash)
        return {"id": 3, "username": username, "email": email, "role": role, "created_at": now}

    async def store_refresh_token(**kwargs):
        return 1

    monkeypatch.setattr(repository, "username_or_email_taken", taken)
    monkeypatch.setattr(repository, "create_user", create_user)
    monkeypatch.setattr(repository, "store_refresh_token", store_refresh_token)

    result = await service.register(
        schemas.RegisterRequest(username="newbie", email="n@example.com", password="longenough"),
        service.ClientMeta(),
    )

    assert created["role"] == security.ROLE_NORMAL
    assert created["password_hash"] != "longenough"
    assert security.decode_access_token(result.tokens.access_token).role == "normal"


@pytest.mark.asyncio
async def test_duplicate_registration_is_409(monkeypatch):
    async def taken(*, username, email):
        return True

    monkeypatch.setattr(repository, "username_or_email_taken", taken)

    with pytest.raises(HTTPException) as excinfo:
        await service.register(
            schemas.RegisterRequest(username="newbie", email="n@example.com", password="longenough"),
            service.ClientMeta(),
        )
    assert excinfo.value.status_code == 409


@pytest.mark.asyncio
async def test_refresh_rotates_the_old_token(monkeypatch):
    stored = {}
    now = datetime.now(timezone.utc)

    async def find_refresh_token(token_hash):
        return {"id": 8, "user_id": 3, "revoked_at": None, "expires_at": now + timedelta(days=1)}

    async def find_user(*, user_id=None, username=None):
        return {"id": 3, "username": "reader", "email": "r@example.com", "role": "normal", "created_at": now}

    async def store_refresh_token(**kwargs):
        stored.update(kwargs)
        return 9

    monkeypatch.setattr(repository, "find_refresh_token", find_refresh_token)
    monkeypatch.setattr(repository, "find_user", find_user)
    monkeypatch.setattr(repository, "store_refresh_token", store_refresh_token)

    pair = await service.refresh_tokens(schemas.RefreshRequest(refresh_token="r" * 40), service.ClientMeta())

    assert stored["replaces_token_id"] == 8
    assert stored["token_hash"] == security.hash_refresh_token(pair.refresh_token)


@pytest.mark.asyncio
async def test_expired_refresh_token_is_revoked(monkeypatch):
    revoked = []

    async def find_refresh_token(token_hash):
        return {"id": 8, "user_id": 3, "revoked_at": None, "expires_at": datetime(2000, 1, 1, tzinfo=timezone.utc)}

    async def revoke_refresh_tokens(**kwargs):
        revoked.append(kwargs)
        return 1

    monkeypatch.setattr(repository, "find_refresh_token", find_refresh_token)
    monkeypatch.setattr(repository, "revoke_refresh_tokens", revoke_refresh_tokens)

    with pytest.raises(HTTPException) as excinfo:
        await service.refresh_tokens(schemas.RefreshRequest(refresh_token="r" * 40), service.ClientMeta())

    assert excinfo.value.status_code == 401
    assert revoked == [{"token_id": 8}]
