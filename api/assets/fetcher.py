"""
Remote cover download.

Pulls a single image from an http(s) URL into memory and hands it to the
asset store. Bodies are buffered whole, which is fine for cover images and
nothing bigger.

Limits:
- at most 10 redirect hops (the 11th is an error, not a truncated result)
- 30 seconds end to end, including redirects and body read
- no cookies or credentials are forwarded
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
from fastapi.concurrency import run_in_threadpool

from .mime import ALLOWED_MIME_BY_EXTENSION
from .store import SENTINEL_EXTENSION, AssetStore, StoredAsset, normalize_extension

USER_AGENT = "Mozilla/5.0 (compatible; CatalogCoverFetcher/1.0)"
MAX_REDIRECTS = 10
FETCH_TIMEOUT_S = 30.0

# Allowlisted media types map back to the extension an upload of the same
# bytes would use, independent of the host's mime.types.
_ALLOWED_EXTENSION_BY_MIME = {
    mime_type: ext for ext, mime_type in ALLOWED_MIME_BY_EXTENSION.items() if ext != ".jpeg"
}

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class FetchedContent:
    content: bytes
    content_type: str | None
    extension: str


def extension_for_content_type(content_type: str | None) -> str:
    """
    Map a Content-Type header to a file extension, `.bin` when unknown.
    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if not media_type:
        return SENTINEL_EXTENSION

    ext = _ALLOWED_EXTENSION_BY_MIME.get(media_type) or mimetypes.guess_extension(media_type)
    if not ext:
        return SENTINEL_EXTENSION
    return normalize_extension(ext)


def _validate_url(url: str) -> str:
    url = (url or "").strip()
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise FetchError(f"Only http(s) URLs can be fetched: {url!r}")
    return url


class RemoteFetcher:
    def __init__(
        self,
        *,
        timeout_s: float = FETCH_TIMEOUT_S,
        max_redirects: int = MAX_REDIRECTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.max_redirects = max_redirects
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            max_redirects=self.max_redirects,
            timeout=self.timeout_s,
            transport=self._transport,
        )

    async def _get(self, url: str) -> httpx.Response:
        async with self._client() as client:
            return await client.get(url)

    async def fetch(self, url: str) -> FetchedContent:
        url = _validate_url(url)
        logger.info("cover_fetch_start url=%s", url)

        try:
            resp = await asyncio.wait_for(self._get(url), timeout=self.timeout_s)
        except httpx.TooManyRedirects as exc:
            raise FetchError(f"Too many redirects (limit {self.max_redirects}) for {url}") from exc
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchError(f"Timed out after {self.timeout_s:g}s fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to download {url}: {exc}") from exc

        if resp.status_code != 200:
            raise FetchError(
                f"Download returned status {resp.status_code}",
                status_code=resp.status_code,
            )

        content_type = resp.headers.get("Content-Type")
        extension = extension_for_content_type(content_type)
        if extension == SENTINEL_EXTENSION:
            # Unknown types are stored as .bin, not rejected.
            logger.warning(
                "cover_fetch_unmapped_content_type url=%s content_type=%r fallback=%s",
                url,
                content_type,
                SENTINEL_EXTENSION,
            )

        return FetchedContent(content=resp.content, content_type=content_type, extension=extension)

    async def fetch_into(self, store: AssetStore, url: str, *, base_url: str) -> StoredAsset:
        """
        Download `url` and store the bytes; returns the stored asset.
        """
        fetched = await self.fetch(url)
        return await run_in_threadpool(store.put, fetched.content, fetched.extension, base_url=base_url)
