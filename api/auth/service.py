"""
Auth business logic: accounts, logins and refresh-token rotation.

New accounts always get the `normal` role. Admins are promoted out of band
(directly in the database).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status

from core import settings

from . import repository, schemas, security

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientMeta:
    user_agent: str | None = None
    ip_address: str | None = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(user_row)


async def _issue_tokens(
    user_row: dict,
    client: ClientMeta,
    *,
    replaces_token_id: int | None = None,
) -> schemas.TokenPairResponse:
    raw_refresh, refresh_hash = security.new_refresh_token()
    await repository.store_refresh_token(
        user_id=int(user_row["id"]),
        token_hash=refresh_hash,
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days()),
        user_agent=client.user_agent,
        ip_address=client.ip_address,
        replaces_token_id=replaces_token_id,
    )
    access = security.build_access_token(
        user_id=int(user_row["id"]),
        username=str(user_row["username"]),
        role=str(user_row["role"]),
    )
    return schemas.TokenPairResponse(access_token=access, refresh_token=raw_refresh)


async def register(payload: schemas.RegisterRequest, client: ClientMeta) -> schemas.AuthResponse:
    if await repository.username_or_email_taken(username=payload.username, email=payload.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email is already registered.",
        )

    user_row = await repository.create_user(
        username=payload.username,
        email=payload.email,
        password_hash=security.hash_password(payload.password),
        role=security.ROLE_NORMAL,
    )
    logger.info("user_registered id=%s username=%s", user_row["id"], user_row["username"])

    tokens = await _issue_tokens(user_row, client)
    return schemas.AuthResponse(user=to_user_response(user_row), tokens=tokens)


async def login(payload: schemas.LoginRequest, client: ClientMeta) -> schemas.AuthResponse:
    user_row = await repository.find_user(username=payload.username)
    password_hash = str(user_row["password_hash"]) if user_row else ""
    if user_row is None or not security.verify_password(payload.password, password_hash):
        logger.info("login_failed username=%s", payload.username)
        raise _unauthorized("Invalid username or password.")

    tokens = await _issue_tokens(user_row, client)
    return schemas.AuthResponse(user=to_user_response(user_row), tokens=tokens)


async def refresh_tokens(payload: schemas.RefreshRequest, client: ClientMeta) -> schemas.TokenPairResponse:
    """
    Exchange a live refresh token for a new pair. The old token is revoked.
    """
    token_row = await repository.find_refresh_token(security.hash_refresh_token(payload.refresh_token))
    if token_row is None:
        raise _unauthorized("Invalid refresh token.")
    if token_row["revoked_at"] is not None:
        raise _unauthorized("Refresh token is revoked.")

    token_id = int(token_row["id"])
    if token_row["expires_at"] <= datetime.now(timezone.utc):
        await repository.revoke_refresh_tokens(token_id=token_id)
        raise _unauthorized("Refresh token is expired.")

    user_row = await repository.find_user(user_id=int(token_row["user_id"]))
    if user_row is None:
        await repository.revoke_refresh_tokens(token_id=token_id)
        raise _unauthorized("Invalid refresh token owner.")

    return await _issue_tokens(user_row, client, replaces_token_id=token_id)


async def logout(payload: schemas.LogoutRequest, *, user_id: int) -> dict[str, bool]:
    if payload.refresh_token:
        await repository.revoke_refresh_tokens(token_hash=security.hash_refresh_token(payload.refresh_token))
    else:
        revoked = await repository.revoke_refresh_tokens(user_id=user_id)
        logger.info("sessions_revoked user_id=%s count=%s", user_id, revoked)
    return {"ok": True}


async def user_for_access_token(access_token: str) -> dict:
    try:
        claims = security.decode_access_token(access_token)
    except security.AuthSecurityError as exc:
        raise _unauthorized(str(exc)) from exc

    user_row = await repository.find_user(user_id=claims.user_id)
    if user_row is None:
        raise _unauthorized("User not found.")
    return user_row
