"""Postgres schema management for InsightCourier.

Schema creation is idempotent (CREATE IF NOT EXISTS), so it runs on every start.
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    """
    DO $$ BEGIN
      CREATE TYPE reaction_type AS ENUM ('like', 'dislike');
    EXCEPTION WHEN duplicate_object THEN NULL;
    END $$;
    """,
    # One row per configured feed; last_fetched_at is the watermark
    """
    CREATE TABLE IF NOT EXISTS sources (
      id SERIAL PRIMARY KEY,
      name TEXT UNIQUE NOT NULL,
      last_fetched_at TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS source_items (
      id SERIAL PRIMARY KEY,
      source_id INTEGER NOT NULL REFERENCES sources(id),
      url TEXT NOT NULL,
      url_hash TEXT NOT NULL,
      title TEXT,
      text_content TEXT,
      excerpt TEXT,
      language TEXT,
      published_at TIMESTAMPTZ NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_source_items_source_published ON source_items (source_id, published_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_source_items_url_hash ON source_items (url_hash);",
    # Feedback from the notification channel
    """
    CREATE TABLE IF NOT EXISTS reactions (
      id SERIAL PRIMARY KEY,
      source_item_id INTEGER NOT NULL REFERENCES source_items(id) ON DELETE CASCADE,
      type reaction_type NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_reactions_source_item ON reactions (source_item_id);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)
