"""
Users and refresh-token sessions (raw SQL).
"""

from __future__ import annotations

from datetime import datetime

from core import db

_USER_COLUMNS = "id, username, email, password_hash, role, created_at, updated_at"
_TOKEN_COLUMNS = "id, user_id, expires_at, revoked_at, replaced_by_token_id, created_at, last_used_at"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_username(username: str) -> str:
    return (username or "").strip()


async def create_user(*, username: str, email: str, password_hash: str, role: str) -> dict:
    row = await db.fetch_one(
        f"""
        INSERT INTO users (username, email, password_hash, role)
        VALUES ($1, $2, $3, $4)
        RETURNING {_USER_COLUMNS}
        """,
        normalize_username(username),
        normalize_email(email),
        password_hash,
        role,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def find_user(*, user_id: int | None = None, username: str | None = None) -> dict | None:
    if user_id is not None:
        return await db.fetch_one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
    return await db.fetch_one(
        f"SELECT {_USER_COLUMNS} FROM users WHERE username = $1",
        normalize_username(username or ""),
    )


async def username_or_email_taken(*, username: str, email: str) -> bool:
    row = await db.fetch_one(
        """
        SELECT 1 AS taken
        FROM users
        WHERE username = $1
           OR email = $2
        LIMIT 1
        """,
        normalize_username(username),
        normalize_email(email),
    )
    return row is not None


async def find_refresh_token(token_hash: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_TOKEN_COLUMNS} FROM refresh_tokens WHERE token_hash = $1",
        token_hash,
    )


async def store_refresh_token(
    *,
    user_id: int,
    token_hash: str,
    expires_at: datetime,
    user_agent: str | None,
    ip_address: str | None,
    replaces_token_id: int | None = None,
) -> int:
    """
    Persist a new session. When it replaces an older token, that token is
    revoked and linked to the new one in the same transaction.
    """
    async with db.transaction() as conn:
        new_id = await conn.fetchval(
            """
            INSERT INTO refresh_tokens (user_id, token_hash, expires_at, user_agent, ip_address)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            user_id,
            token_hash,
            expires_at,
            user_agent,
            ip_address,
        )
        if replaces_token_id is not None:
            await conn.execute(
                """
                UPDATE refresh_tokens
                SET last_used_at = now(),
                    revoked_at = COALESCE(revoked_at, now()),
                    replaced_by_token_id = $2
                WHERE id = $1
                """,
                replaces_token_id,
                new_id,
            )
    return int(new_id)


async def revoke_refresh_tokens(
    *,
    token_id: int | None = None,
    token_hash: str | None = None,
    user_id: int | None = None,
) -> int:
    """
    Revoke live tokens matching exactly one selector; returns how many.
    """
    selectors = {"id": token_id, "token_hash": token_hash, "user_id": user_id}
    chosen = [(column, value) for column, value in selectors.items() if value is not None]
    if len(chosen) != 1:
        raise ValueError("Pass exactly one of token_id, token_hash or user_id.")

    column, value = chosen[0]
    status = await db.execute(
        f"""
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE {column} = $1
          AND revoked_at IS NULL
        """,
        value,
    )
    return db.affected_rows(status)
