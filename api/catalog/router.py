"""
FastAPI routers for catalog entities.

One router per entity type, built from the same factory. This module does
not use postponed annotations: the search/update models are closure
variables that FastAPI must see as real classes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from assets import service as asset_service
from assets.fetcher import RemoteFetcher
from assets.store import AssetStore
from auth import dependencies as auth_dependencies

from . import schemas, service
from .entities import BOOKS, GAMES, EntityConfig


def build_router(
    config: EntityConfig,
    *,
    create_model: type[BaseModel],
    update_model: type[BaseModel],
    search_model: type[BaseModel],
) -> APIRouter:
    router = APIRouter(prefix=f"/api/v1/{config.name}")

    @router.get("")
    async def list_entries(
        limit: int | None = None,
        offset: int | None = None,
        current_user: dict = Depends(auth_dependencies.get_current_user),
    ) -> dict:
        return await service.list_entries(
            config,
            user_id=int(current_user["id"]),
            limit=limit,
            offset=offset,
        )

    @router.get("/search")
    async def search_entries(
        params: Annotated[search_model, Query()],
        current_user: dict = Depends(auth_dependencies.get_current_user),
    ) -> dict:
        """
        Filter the current user's entries; every filter is optional.
        """
        return await service.search(config, params, user_id=int(current_user["id"]))

    @router.get("/{entry_id}")
    async def get_entry(
        entry_id: int,
        current_user: dict = Depends(auth_dependencies.get_current_user),
    ) -> dict:
        return await service.get_entry(config, entry_id, user_id=int(current_user["id"]))

    @router.post("", status_code=201)
    async def create_entry(
        request: Request,
        store: AssetStore = Depends(asset_service.get_asset_store),
        fetcher: RemoteFetcher = Depends(asset_service.get_remote_fetcher),
        current_user: dict = Depends(auth_dependencies.require_admin),
    ) -> dict:
        """
        Create an entry. The cover comes from an uploaded `cover_image`
        file, a `cover_image_url` to download, or an inline `cover_image`.
        """
        payload, upload = await service.parse_create_request(request, create_model)
        return await service.create_entry(
            config,
            payload,
            user_id=int(current_user["id"]),
            upload=upload,
            store=store,
            fetcher=fetcher,
            base_url=asset_service.request_base_url(request),
        )

    @router.put("/{entry_id}")
    async def update_entry(
        entry_id: int,
        payload: update_model,
        current_user: dict = Depends(auth_dependencies.require_admin),
    ) -> dict:
        return await service.update_entry(config, entry_id, payload, user_id=int(current_user["id"]))

    @router.delete("/{entry_id}")
    async def delete_entry(
        entry_id: int,
        current_user: dict = Depends(auth_dependencies.require_admin),
    ) -> dict:
        return await service.delete_entry(config, entry_id, user_id=int(current_user["id"]))

    return router


games_router = build_router(
    GAMES,
    create_model=schemas.GameCreate,
    update_model=schemas.GameUpdate,
    search_model=schemas.GameSearchParams,
)

books_router = build_router(
    BOOKS,
    create_model=schemas.BookCreate,
    update_model=schemas.BookUpdate,
    search_model=schemas.BookSearchParams,
)
