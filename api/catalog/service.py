"""
Catalog business logic, independent of FastAPI routing.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import HTTPException, Request, UploadFile
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile as FormFile

from assets import service as asset_service
from assets.fetcher import RemoteFetcher
from assets.store import AssetStore

from . import repository
from .entities import EntityConfig
from .query import InvalidCriteria, PageSpec, SortSpec
from .schemas import PAGING_AND_SORT_FIELDS


def split_search_params(params: BaseModel) -> tuple[dict[str, Any], SortSpec, PageSpec]:
    """
    Separate filter criteria from sort and paging controls.
    """
    raw = params.model_dump()
    criteria = {k: v for k, v in raw.items() if k not in PAGING_AND_SORT_FIELDS}
    sort = SortSpec(field=raw.get("sort_by"), direction=raw.get("sort_order"))
    page = PageSpec(limit=raw.get("limit"), offset=raw.get("offset"))
    return criteria, sort, page


async def search(config: EntityConfig, params: BaseModel, *, user_id: int) -> dict:
    criteria, sort, page = split_search_params(params)
    try:
        query = config.query_builder().build(criteria, sort, page, user_id)
    except InvalidCriteria as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    results = await repository.run_search(config, query)
    return {
        "results": results,
        "limit": query.limit,
        "offset": query.offset,
        "count": len(results),
    }


async def list_entries(config: EntityConfig, *, user_id: int, limit: int | None, offset: int | None) -> dict:
    query = config.query_builder().build({}, SortSpec(), PageSpec(limit=limit, offset=offset), user_id)
    results = await repository.run_search(config, query)
    return {
        "results": results,
        "limit": query.limit,
        "offset": query.offset,
        "count": len(results),
    }


async def get_entry(config: EntityConfig, entry_id: int, *, user_id: int) -> dict:
    entry = await repository.get_entry(config, entry_id, user_id=user_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"{config.singular.capitalize()} not found")
    return entry


def _validation_error(exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=exc.errors(include_url=False, include_context=False),
    )


async def parse_create_request(
    request: Request,
    model: type[BaseModel],
) -> tuple[BaseModel, UploadFile | None]:
    """
    Accept either a JSON body or a multipart form.

    Multipart forms carry the entry as a JSON string in the `payload` field
    and may include a `cover_image` file.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        raw_payload = form.get("payload")
        if not isinstance(raw_payload, str):
            raise HTTPException(status_code=400, detail="Multipart requests need a JSON `payload` field.")
        cover = form.get("cover_image")
        upload = cover if isinstance(cover, FormFile) else None
        try:
            return model.model_validate_json(raw_payload), upload
        except ValidationError as exc:
            raise _validation_error(exc) from exc

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Bad request body: invalid JSON.") from exc
    try:
        return model.model_validate(body), None
    except ValidationError as exc:
        raise _validation_error(exc) from exc


async def create_entry(
    config: EntityConfig,
    payload: BaseModel,
    *,
    user_id: int,
    upload: UploadFile | None,
    store: AssetStore,
    fetcher: RemoteFetcher,
    base_url: str,
) -> dict:
    cover = await asset_service.resolve_cover(
        store=store,
        fetcher=fetcher,
        base_url=base_url,
        upload=upload,
        cover_image_url=getattr(payload, "cover_image_url", None),
        cover_image=getattr(payload, "cover_image", None),
    )

    data = payload.model_dump(exclude={"links", "cover_image_url"})
    data["cover_image"] = cover
    links = [link.model_dump() for link in getattr(payload, "links", [])]

    row = await repository.create_entry(config, user_id=user_id, values=data, links=links)
    return {
        "id": int(row["id"]),
        "cover_image": cover,
        "message": f"{config.singular.capitalize()} created successfully",
    }


async def update_entry(config: EntityConfig, entry_id: int, payload: BaseModel, *, user_id: int) -> dict:
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    links = changes.pop("links", None)
    if not changes and links is None:
        raise HTTPException(status_code=400, detail="No fields to update")

    updated = await repository.update_entry(
        config,
        entry_id,
        user_id=user_id,
        values=changes,
        links=links,
    )
    if not updated:
        raise HTTPException(status_code=404, detail=f"{config.singular.capitalize()} not found")
    return {"message": f"{config.singular.capitalize()} updated successfully"}


async def delete_entry(config: EntityConfig, entry_id: int, *, user_id: int) -> dict:
    deleted = await repository.delete_entry(config, entry_id, user_id=user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"{config.singular.capitalize()} not found")
    return {"message": f"{config.singular.capitalize()} deleted successfully"}
