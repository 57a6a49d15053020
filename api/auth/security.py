"""
Passwords, access JWTs and opaque refresh tokens.

Access tokens are self-contained (user id, username, role); refresh tokens
are random strings stored only as sha256 digests.
"""

from __future__ import annotations

import hashlib
import secrets
import time
from dataclasses import dataclass

import bcrypt
import jwt

from core import settings

ROLE_ADMIN = "admin"
ROLE_NORMAL = "normal"
ROLES = frozenset({ROLE_ADMIN, ROLE_NORMAL})

ACCESS_TOKEN_TYPE = "access"


class AuthSecurityError(RuntimeError):
    pass


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    username: str
    role: str


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise AuthSecurityError("Password is empty.")
    digest = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt())
    return digest.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def build_access_token(*, user_id: int, username: str, role: str, now: int | None = None) -> str:
    issued_at = int(time.time()) if now is None else now
    claims = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + settings.access_token_expire_minutes() * 60,
    }
    return jwt.encode(claims, settings.jwt_secret(), algorithm=settings.jwt_algorithm())


def decode_access_token(token: str) -> AccessClaims:
    """
    Verify signature, expiry and token type; return the typed claims.
    """
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(
            raw,
            settings.jwt_secret(),
            algorithms=[settings.jwt_algorithm()],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("Access token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise AuthSecurityError("Token is not an access token.")

    subject = str(payload["sub"])
    if not subject.isdigit():
        raise AuthSecurityError("Invalid access token subject.")

    return AccessClaims(
        user_id=int(subject),
        username=str(payload.get("username") or ""),
        role=str(payload.get("role") or ROLE_NORMAL),
    )


def new_refresh_token() -> tuple[str, str]:
    """
    Return (raw token for the client, digest for the database).
    """
    raw = secrets.token_urlsafe(48)
    return raw, hash_refresh_token(raw)


def hash_refresh_token(raw_refresh_token: str) -> str:
    token = (raw_refresh_token or "").strip()
    if not token:
        raise AuthSecurityError("Refresh token is empty.")
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
