"""Database schema for the sticker market.

Three tables: users, stickers and user_stickers (ownership records).

Timestamps are ISO-8601 TEXT (UTC, with 'Z') so both engines store them the same way.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + autoincrement).
"""

from __future__ import annotations

import re


# Largest value an id / coin / price column holds on both engines (signed 64-bit).
MAX_DB_INT = 2**63 - 1

SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- user_id is the login handle chosen at signup; id is the internal key.
-- coins can never go negative: purchases debit with a guarded UPDATE and the
-- CHECK rejects anything that slips past it.
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    user_id TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    coins BIGINT NOT NULL DEFAULT 0 CHECK (coins >= 0),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Stickers are immutable once uploaded.
CREATE TABLE IF NOT EXISTS stickers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    image TEXT NOT NULL,
    uploader_id INTEGER NOT NULL,
    price BIGINT NOT NULL CHECK (price >= 0),
    created_at TEXT NOT NULL,
    FOREIGN KEY (uploader_id) REFERENCES users(id)
);
CREATE INDEX IF NOT EXISTS idx_stickers_uploader ON stickers (uploader_id);

-- Ownership records. One row per (user, sticker): a sticker is charged at most once.
CREATE TABLE IF NOT EXISTS user_stickers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    sticker_id INTEGER NOT NULL,
    purchased_at TEXT NOT NULL,
    UNIQUE (user_id, sticker_id),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (sticker_id) REFERENCES stickers(id)
);
CREATE INDEX IF NOT EXISTS idx_user_stickers_sticker ON user_stickers (sticker_id);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # AUTOINCREMENT primary keys
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    out = re.sub(r"\bAUTOINCREMENT\b", "", out, flags=re.IGNORECASE)

    # Foreign keys point at BIGSERIAL ids
    out = re.sub(r"\b(uploader_id|user_id|sticker_id) INTEGER\b", r"\1 BIGINT", out)

    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
