from __future__ import annotations

import io

import httpx
import pytest
from fastapi import HTTPException, UploadFile

from assets.fetcher import RemoteFetcher
from assets.service import put_bytes, resolve_cover
from assets.store import AssetStore

BASE_URL = "http://testserver"


def fetcher_returning(content: bytes, content_type: str = "image/png") -> RemoteFetcher:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, content=content, headers={"Content-Type": content_type})
    )
    return RemoteFetcher(transport=transport)


def failing_fetcher() -> RemoteFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("fetcher should not be called")

    return RemoteFetcher(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_uploaded_file_wins(store, png_bytes):
    upload = UploadFile(file=io.BytesIO(png_bytes), filename="cover.png")

    cover = await resolve_cover(
        store=store,
        fetcher=failing_fetcher(),
        base_url=BASE_URL,
        upload=upload,
        cover_image_url="https://covers.example/other.png",
        cover_image="inline",
    )

    assert cover.startswith(f"{BASE_URL}/files/")
    assert cover.endswith(".png")


@pytest.mark.asyncio
async def test_url_beats_inline(store, png_bytes):
    cover = await resolve_cover(
        store=store,
        fetcher=fetcher_returning(png_bytes),
        base_url=BASE_URL,
        cover_image_url="https://covers.example/c.png",
        cover_image="inline",
    )

    assert cover.startswith(f"{BASE_URL}/files/")


@pytest.mark.asyncio
async def test_inline_is_kept_verbatim(store):
    cover = await resolve_cover(
        store=store,
        fetcher=failing_fetcher(),
        base_url=BASE_URL,
        cover_image="https://elsewhere.example/img.jpg",
    )

    assert cover == "https://elsewhere.example/img.jpg"
    assert not store.root.exists()


@pytest.mark.asyncio
async def test_no_cover_source_is_400(store):
    with pytest.raises(HTTPException) as excinfo:
        await resolve_cover(store=store, fetcher=failing_fetcher(), base_url=BASE_URL, cover_image="  ")

    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_spoofed_upload_is_rejected_before_storing(store):
    upload = UploadFile(file=io.BytesIO(b"just text\n"), filename="cover.png")

    with pytest.raises(HTTPException) as excinfo:
        await resolve_cover(store=store, fetcher=failing_fetcher(), base_url=BASE_URL, upload=upload)

    assert excinfo.value.status_code == 400
    assert not store.root.exists()


@pytest.mark.asyncio
async def test_store_failure_is_500(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")

    with pytest.raises(HTTPException) as excinfo:
        await put_bytes(AssetStore(blocker / "files"), b"abc", ".png", base_url=BASE_URL)

    assert excinfo.value.status_code == 500
