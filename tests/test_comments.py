from __future__ import annotations

from datetime import datetime, timezone

import pytest

from auth import dependencies as auth_dependencies
from catalog import repository as catalog_repository
from comments import repository as comments_repository

from conftest import ADMIN_USER, NORMAL_USER

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def comment_row(comment_id: int, *, user: dict, game_id=1, content="great game") -> dict:
    return {
        "id": comment_id,
        "content": content,
        "user_id": user["id"],
        "username": user["username"],
        "game_id": game_id,
        "book_id": None,
        "created_at": NOW,
        "updated_at": NOW,
    }


@pytest.fixture
def as_normal_user(app):
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: NORMAL_USER


@pytest.fixture
def fake_comments(monkeypatch):
    rows = {10: comment_row(10, user=ADMIN_USER), 11: comment_row(11, user=NORMAL_USER)}
    deleted = []

    async def get_comment(comment_id):
        return rows.get(comment_id)

    async def delete_comment(comment_id):
        deleted.append(comment_id)
        return rows.pop(comment_id, None) is not None

    async def update_comment(comment_id, *, content):
        rows[comment_id] = {**rows[comment_id], "content": content}
        return True

    monkeypatch.setattr(comments_repository, "get_comment", get_comment)
    monkeypatch.setattr(comments_repository, "delete_comment", delete_comment)
    monkeypatch.setattr(comments_repository, "update_comment", update_comment)
    return deleted


def test_create_requires_exactly_one_target(client):
    both = client.post("/api/v1/comments", json={"content": "hi", "game_id": 1, "book_id": 2})
    neither = client.post("/api/v1/comments", json={"content": "hi"})

    assert both.status_code == 422
    assert neither.status_code == 422


def test_create_rejects_long_content(client):
    resp = client.post("/api/v1/comments", json={"content": "x" * 1001, "game_id": 1})

    assert resp.status_code == 422


def test_create_on_missing_game_is_404(client, monkeypatch):
    async def entry_exists(config, entry_id):
        return False

    monkeypatch.setattr(catalog_repository, "entry_exists", entry_exists)

    resp = client.post("/api/v1/comments", json={"content": "hi", "game_id": 5})

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Game not found"


def test_create_returns_comment(client, monkeypatch, as_normal_user):
    async def entry_exists(config, entry_id):
        return True

    async def create_comment(*, user_id, content, game_id, book_id):
        return comment_row(99, user=NORMAL_USER, game_id=game_id, content=content)

    monkeypatch.setattr(catalog_repository, "entry_exists", entry_exists)
    monkeypatch.setattr(comments_repository, "create_comment", create_comment)

    resp = client.post("/api/v1/comments", json={"content": "loved it", "game_id": 3})

    assert resp.status_code == 201
    assert resp.json()["username"] == NORMAL_USER["username"]
    assert resp.json()["game_id"] == 3


def test_list_needs_a_target(client):
    resp = client.get("/api/v1/comments")

    assert resp.status_code == 400


def test_owner_can_delete_own_comment(client, fake_comments, as_normal_user):
    resp = client.delete("/api/v1/comments/11")

    assert resp.status_code == 200
    assert fake_comments == [11]


def test_normal_user_cannot_delete_others_comment(client, fake_comments, as_normal_user):
    resp = client.delete("/api/v1/comments/10")

    assert resp.status_code == 403
    assert fake_comments == []


def test_admin_can_delete_any_comment(client, fake_comments):
    resp = client.delete("/api/v1/comments/11")

    assert resp.status_code == 200
    assert fake_comments == [11]


def test_owner_can_edit_own_comment(client, fake_comments, as_normal_user):
    resp = client.put("/api/v1/comments/11", json={"content": "changed my mind"})

    assert resp.status_code == 200
    assert resp.json()["content"] == "changed my mind"


def test_missing_comment_is_404(client, fake_comments):
    resp = client.put("/api/v1/comments/404", json={"content": "hello"})

    assert resp.status_code == 404
