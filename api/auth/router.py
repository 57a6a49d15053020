"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from . import dependencies, schemas, service

router = APIRouter(prefix="/api/v1")


def client_meta(request: Request) -> service.ClientMeta:
    return service.ClientMeta(
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


@router.post("/auth/register", status_code=201)
async def register(
    payload: schemas.RegisterRequest,
    client: service.ClientMeta = Depends(client_meta),
) -> schemas.AuthResponse:
    return await service.register(payload, client)


@router.post("/auth/login")
async def login(
    payload: schemas.LoginRequest,
    client: service.ClientMeta = Depends(client_meta),
) -> schemas.AuthResponse:
    return await service.login(payload, client)


@router.post("/auth/refresh")
async def refresh(
    payload: schemas.RefreshRequest,
    client: service.ClientMeta = Depends(client_meta),
) -> schemas.TokenPairResponse:
    return await service.refresh_tokens(payload, client)


@router.post("/auth/logout")
async def logout(
    payload: schemas.LogoutRequest,
    current_user: dict = Depends(dependencies.get_current_user),
) -> dict:
    return await service.logout(payload, user_id=int(current_user["id"]))


@router.get("/me")
async def me(current_user: dict = Depends(dependencies.get_current_user)) -> schemas.UserResponse:
    return service.to_user_response(current_user)
