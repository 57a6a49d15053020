"""
Asset ingestion "service layer".

Glue between HTTP inputs and the store/fetcher/mime components:
- read uploads with a size limit
- turn component errors into HTTP errors
- pick exactly one cover source for entity creation
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from core import settings

from . import mime
from .fetcher import FetchError, RemoteFetcher
from .store import AssetIOError, AssetStore, StoredAsset, extension_from_filename

logger = logging.getLogger(__name__)


def get_asset_store() -> AssetStore:
    return AssetStore(settings.files_dir())


def get_remote_fetcher() -> RemoteFetcher:
    return RemoteFetcher()


def request_base_url(request: Request) -> str:
    """
    `scheme://host` of the inbound request; permalinks are built from it.
    """
    return f"{request.url.scheme}://{request.url.netloc}"


def _max_upload_bytes() -> int:
    try:
        return settings.max_upload_bytes()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


async def read_upload_bytes(file: UploadFile, max_bytes: int) -> bytes:
    """
    Read the upload into memory, enforcing a maximum size.
    """
    chunk_size = 1024 * 1024  # 1 MiB
    buf = bytearray()

    try:
        while True:
            chunk = await file.read(chunk_size)
            if not chunk:
                break
            buf.extend(chunk)
            if len(buf) > max_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File too large. Max is {max_bytes} bytes.",
                )
    except OSError as exc:
        raise HTTPException(status_code=500, detail=f"file read error: {exc}") from exc

    return bytes(buf)


def validate_media(filename: str | None, data: bytes) -> mime.MimeDecision:
    if not filename:
        raise HTTPException(status_code=400, detail="Missing filename.")
    try:
        return mime.validate(filename, data[: mime.SNIFF_BYTES])
    except mime.UnsupportedType as exc:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc)) from exc
    except mime.MimeMismatch as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "message": str(exc),
                "detected_type": exc.detected_type,
                "expected_type": exc.expected_type,
            },
        ) from exc


async def put_bytes(store: AssetStore, data: bytes, extension: str, *, base_url: str) -> StoredAsset:
    try:
        return await run_in_threadpool(store.put, data, extension, base_url=base_url)
    except AssetIOError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save file: {exc}") from exc


async def ingest_upload(file: UploadFile, *, store: AssetStore, base_url: str) -> StoredAsset:
    """
    Validate and store one uploaded media file.
    """
    data = await read_upload_bytes(file, max_bytes=_max_upload_bytes())
    validate_media(file.filename, data)
    return await put_bytes(store, data, extension_from_filename(file.filename), base_url=base_url)


async def ingest_url(
    url: str,
    *,
    store: AssetStore,
    fetcher: RemoteFetcher,
    base_url: str,
) -> StoredAsset:
    try:
        return await fetcher.fetch_into(store, url, base_url=base_url)
    except FetchError as exc:
        logger.warning("cover_fetch_failed url=%s status_code=%s error=%s", url, exc.status_code, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to download cover image: {exc}",
        ) from exc
    except AssetIOError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save file: {exc}") from exc


async def resolve_cover(
    *,
    store: AssetStore,
    fetcher: RemoteFetcher,
    base_url: str,
    upload: UploadFile | None = None,
    cover_image_url: str | None = None,
    cover_image: str | None = None,
) -> str:
    """
    Return the cover reference to persist on a new entity.

    Precedence: uploaded file, then `cover_image_url`, then the inline
    `cover_image` string, which is kept verbatim.
    """
    if upload is not None and upload.filename:
        stored = await ingest_upload(upload, store=store, base_url=base_url)
        return stored.permalink

    url = (cover_image_url or "").strip()
    if url:
        stored = await ingest_url(url, store=store, fetcher=fetcher, base_url=base_url)
        return stored.permalink

    inline = (cover_image or "").strip()
    if inline:
        return inline

    raise HTTPException(
        status_code=400,
        detail="cover_image, cover_image_url, or cover_image file upload is required",
    )
