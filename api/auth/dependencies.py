"""
FastAPI dependencies that gate routes on the caller's identity and role.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status

from . import security, service


def parse_bearer_header(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization must be: Bearer <token>.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return parse_bearer_header(authorization)


async def get_current_user(access_token: str = Depends(get_bearer_token)) -> dict:
    return await service.user_for_access_token(access_token)


def is_admin(user: dict) -> bool:
    return user.get("role") == security.ROLE_ADMIN


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        )
    return current_user
