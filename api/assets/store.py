"""
Content-addressed asset store.

Files live flat under one root directory and are named
`<sha256 hex><extension>`. The web layer serves that directory at
`/files/`, so a permalink is just the request's base URL plus the filename.

Invariants:
- at most one complete file per (digest, extension) pair
- readers never observe a partially written file (temp file + os.replace)
- nothing here touches the database
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

SENTINEL_EXTENSION = ".bin"
FILES_URL_PREFIX = "/files/"

_READ_CHUNK_BYTES = 1024 * 1024  # 1 MiB
_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,16}$")

logger = logging.getLogger(__name__)


class AssetIOError(OSError):
    pass


@dataclass(frozen=True)
class StoredAsset:
    filename: str
    permalink: str
    size_bytes: int
    deduplicated: bool


def normalize_extension(extension: str | None) -> str:
    """
    Lowercase an extension and make sure it has a leading dot.

    Anything that would not make a safe, flat filename falls back to `.bin`.
    """
    ext = (extension or "").strip().lower()
    if not ext:
        return SENTINEL_EXTENSION
    if not ext.startswith("."):
        ext = "." + ext
    if not _EXTENSION_RE.match(ext):
        return SENTINEL_EXTENSION
    return ext


def extension_from_filename(filename: str | None) -> str:
    return normalize_extension(Path(filename or "").suffix)


def build_permalink(base_url: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}{FILES_URL_PREFIX}{filename}"


def _read_all(data: bytes | BinaryIO) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)

    buf = bytearray()
    try:
        while True:
            chunk = data.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            buf.extend(chunk)
    except (OSError, ValueError) as exc:
        raise AssetIOError(f"Could not read asset content: {exc}") from exc
    return bytes(buf)


class AssetStore:
    """
    Single owner of the asset directory. Every write goes through `put`.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, filename: str) -> Path:
        return self.root / filename

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AssetIOError(f"Could not create asset directory {self.root}: {exc}") from exc

    def put(self, data: bytes | BinaryIO, extension: str | None, *, base_url: str) -> StoredAsset:
        """
        Store `data` under its content hash and return where it can be fetched.

        A second call with identical bytes and extension writes nothing and
        returns the same filename; `deduplicated` tells the two cases apart.
        """
        content = _read_all(data)
        digest = hashlib.sha256(content).hexdigest()
        filename = digest + normalize_extension(extension)
        target = self.path_for(filename)

        if target.exists():
            logger.info("asset_deduplicated filename=%s size_bytes=%s", filename, len(content))
            return StoredAsset(
                filename=filename,
                permalink=build_permalink(base_url, filename),
                size_bytes=len(content),
                deduplicated=True,
            )

        self.ensure_root()
        self._atomic_write(target, content)
        logger.info("asset_stored filename=%s size_bytes=%s", filename, len(content))

        return StoredAsset(
            filename=filename,
            permalink=build_permalink(base_url, filename),
            size_bytes=len(content),
            deduplicated=False,
        )

    def _atomic_write(self, target: Path, content: bytes) -> None:
        # Concurrent writers of the same digest each rename a complete temp
        # file over the target; the last rename wins with identical bytes.
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=str(target.parent),
                prefix=".",
                suffix=".part",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, target)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise AssetIOError(f"Could not write asset {target.name}: {exc}") from exc
