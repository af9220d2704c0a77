"""Pick a store backend from a DSN."""

from __future__ import annotations

import logging

from insightcourier.storage.base import Store

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite:///"


def open_store(dsn: str) -> Store:
    """`sqlite:///path/to/file.db` opens SQLite; anything else is a Postgres DSN."""
    if dsn.startswith(SQLITE_PREFIX):
        from insightcourier.storage.sqlite_store import SQLiteStore

        path = dsn[len(SQLITE_PREFIX):]
        logger.info(f"Using SQLite store at {path}")
        return SQLiteStore(path)

    from insightcourier.storage.postgres_store import PostgresStore

    logger.info("Using Postgres store")
    return PostgresStore(dsn)
