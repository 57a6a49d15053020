"""
FastAPI router for raw media uploads.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile

from auth import dependencies as auth_dependencies

from . import service
from .fetcher import RemoteFetcher
from .store import AssetStore, StoredAsset

router = APIRouter(prefix="/api/v1")


def _stored_response(stored: StoredAsset) -> dict:
    if stored.deduplicated:
        message = "duplicate detected, returning existing file"
    else:
        message = "file uploaded successfully"
    return {
        "message": message,
        "filename": stored.filename,
        "permalink": stored.permalink,
    }


@router.post("/upload")
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    store: AssetStore = Depends(service.get_asset_store),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    """
    Store a media file by content hash and return its permalink.

    Uploading bytes that are already stored is not an error; the existing
    file is returned.
    """
    stored = await service.ingest_upload(file, store=store, base_url=service.request_base_url(request))
    return _stored_response(stored)


@router.post("/upload/remote")
async def upload_from_url(
    request: Request,
    url: str = Query(..., min_length=1, max_length=2048),
    store: AssetStore = Depends(service.get_asset_store),
    fetcher: RemoteFetcher = Depends(service.get_remote_fetcher),
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    """
    Download a file from `url` into the asset store.
    """
    stored = await service.ingest_url(
        url,
        store=store,
        fetcher=fetcher,
        base_url=service.request_base_url(request),
    )
    return _stored_response(stored)
