from __future__ import annotations

import struct
import zlib
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from assets import service as asset_service
from assets.store import AssetStore
from auth import dependencies as auth_dependencies
from main import create_app

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)

ADMIN_USER = {"id": 1, "username": "admin", "email": "admin@example.com", "role": "admin", "created_at": CREATED}
NORMAL_USER = {"id": 2, "username": "reader", "email": "reader@example.com", "role": "normal", "created_at": CREATED}


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    body = kind + data
    return struct.pack(">I", len(data)) + body + struct.pack(">I", zlib.crc32(body) & 0xFFFFFFFF)


@pytest.fixture
def png_bytes() -> bytes:
    """A valid 1x1 RGB PNG."""
    ihdr = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    idat = zlib.compress(b"\x00\xff\x00\x00")
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", idat)
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture
def store(tmp_path) -> AssetStore:
    return AssetStore(tmp_path / "files")


@pytest.fixture
def app(store):
    application = create_app()
    application.dependency_overrides[asset_service.get_asset_store] = lambda: store
    application.dependency_overrides[auth_dependencies.get_current_user] = lambda: ADMIN_USER
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
