from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from auth import dependencies as auth_dependencies
from catalog import repository as catalog_repository
from core import db

from conftest import ADMIN_USER, NORMAL_USER

GAME = {
    "title": "Outer Wilds",
    "developer": "Mobius Digital",
    "genres": ["adventure"],
    "tags": ["space"],
    "rating": 5,
    "status": "completed",
    "description": "A time loop in a tiny solar system.",
    "my_thoughts": "Best ending.",
    "links": [{"key": "steam", "value": "https://store.example/outer-wilds"}],
    "color": "#223344",
    "percent": 100,
}


@pytest.fixture
def captured(monkeypatch):
    calls = []

    async def fake_fetch_all(sql, *args):
        calls.append((sql, list(args)))
        return []

    monkeypatch.setattr(db, "fetch_all", fake_fetch_all)
    return calls


@pytest.fixture
def created(monkeypatch):
    calls = []

    async def fake_create_entry(config, *, user_id, values, links):
        calls.append({"table": config.table, "user_id": user_id, "values": values, "links": links})
        now = datetime.now(timezone.utc)
        return {"id": 42, "created_at": now, "updated_at": now}

    monkeypatch.setattr(catalog_repository, "create_entry", fake_create_entry)
    return calls


def test_search_scopes_to_current_user_and_ors_genres(client, captured):
    resp = client.get("/api/v1/games/search", params=[("genres", "rpg"), ("genres", "action")])

    assert resp.status_code == 200
    body = resp.json()
    assert body == {"results": [], "limit": 50, "offset": 0, "count": 0}
    sql, args = captured[0]
    assert "(genres ? $2 OR genres ? $3)" in sql
    assert args[:3] == [ADMIN_USER["id"], "rpg", "action"]


def test_search_clamps_paging(client, captured):
    resp = client.get("/api/v1/books/search", params={"limit": 9999, "offset": -5})

    assert resp.status_code == 200
    assert resp.json()["limit"] == 100
    assert resp.json()["offset"] == 0


def test_search_rejects_owner_override(client, captured):
    resp = client.get("/api/v1/games/search", params={"user_id": 99})

    assert resp.status_code == 422
    assert captured == []


def test_search_rejects_malformed_date(client, captured):
    resp = client.get("/api/v1/games/search", params={"created_after": "yesterday"})

    assert resp.status_code == 400


def test_list_uses_default_order(client, captured):
    resp = client.get("/api/v1/books")

    assert resp.status_code == 200
    sql, _ = captured[0]
    assert "FROM books" in sql
    assert "ORDER BY created_at DESC" in sql


def test_create_with_inline_cover(client, created):
    resp = client.post("/api/v1/games", json={**GAME, "cover_image": "https://img.example/ow.png"})

    assert resp.status_code == 201
    assert resp.json()["id"] == 42
    assert resp.json()["cover_image"] == "https://img.example/ow.png"
    call = created[0]
    assert call["table"] == "games"
    assert call["values"]["cover_image"] == "https://img.example/ow.png"
    assert "cover_image_url" not in call["values"]
    assert call["links"] == [{"key": "steam", "value": "https://store.example/outer-wilds"}]


def test_create_without_any_cover_is_rejected(client, created):
    resp = client.post("/api/v1/games", json=GAME)

    assert resp.status_code == 400
    assert created == []


def test_create_multipart_stores_cover_file(client, created, store, png_bytes):
    resp = client.post(
        "/api/v1/games",
        data={"payload": json.dumps(GAME)},
        files={"cover_image": ("cover.png", png_bytes, "image/png")},
    )

    assert resp.status_code == 201
    cover = resp.json()["cover_image"]
    assert cover.startswith("http://testserver/files/")
    assert cover.endswith(".png")
    assert (store.root / cover.rsplit("/", 1)[-1]).exists()


def test_create_rejects_invalid_payload(client, created):
    resp = client.post("/api/v1/games", json={**GAME, "rating": 9, "cover_image": "x"})

    assert resp.status_code == 422


def test_writes_require_admin(app, client, created):
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: NORMAL_USER

    resp = client.post("/api/v1/games", json={**GAME, "cover_image": "x"})

    assert resp.status_code == 403
    assert created == []


def test_update_without_fields_is_rejected(client):
    resp = client.put("/api/v1/games/1", json={})

    assert resp.status_code == 400


def test_get_missing_entry_is_404(client, monkeypatch):
    async def fake_fetch_one(sql, *args):
        return None

    monkeypatch.setattr(db, "fetch_one", fake_fetch_one)

    resp = client.get("/api/v1/books/123")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Book not found"
