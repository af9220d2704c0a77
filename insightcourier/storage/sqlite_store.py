"""SQLite-backed store for single-host deployments and local runs.

Same contract as the Postgres store. Timestamps are kept as fixed-width UTC
ISO strings so that SQL MAX() on them orders chronologically.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

from insightcourier.ingestion.url_utils import url_hash
from insightcourier.storage.base import ArticleRecord, Reaction, Store, StoredArticle, StoreTransaction, to_utc
from insightcourier.storage.errors import SourceAlreadyExists, SourceNotFound, StorageError, StoreUnavailable

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

SCHEMA = """
CREATE TABLE IF NOT EXISTS sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    last_fetched_at TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS source_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL REFERENCES sources(id),
    url TEXT NOT NULL,
    url_hash TEXT NOT NULL,
    title TEXT,
    text_content TEXT,
    excerpt TEXT,
    language TEXT,
    published_at TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_source_items_source ON source_items (source_id, published_at);
CREATE TABLE IF NOT EXISTS reactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_item_id INTEGER NOT NULL REFERENCES source_items(id) ON DELETE CASCADE,
    type TEXT NOT NULL CHECK (type IN ('like', 'dislike')),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


def format_ts(dt: datetime) -> str:
    return to_utc(dt).strftime(_TS_FORMAT)


def parse_ts(value: str) -> datetime:
    return to_utc(datetime.fromisoformat(value))


class SQLiteTransaction(StoreTransaction):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _execute(self, sql: str, params=()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite query failed: {e}") from e

    def get_watermark(self, source: str) -> Optional[datetime]:
        row = self._execute("SELECT last_fetched_at FROM sources WHERE name = ?", (source,)).fetchone()
        if row is None or row[0] is None:
            return None
        return parse_ts(row[0])

    def set_watermark(self, source: str, ts: datetime) -> None:
        value = format_ts(ts)
        cur = self._execute(
            "UPDATE sources SET last_fetched_at = MAX(COALESCE(last_fetched_at, ?), ?) WHERE name = ?",
            (value, value, source),
        )
        if cur.rowcount == 0:
            raise SourceNotFound(source)

    def _source_id(self, name: str) -> int:
        row = self._execute("SELECT id FROM sources WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise SourceNotFound(name)
        return int(row[0])

    def add_article(self, article: ArticleRecord) -> int:
        cur = self._execute(
            """
            INSERT INTO source_items (
                source_id, url, url_hash, title, text_content, excerpt, language, published_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                self._source_id(article.source_name),
                article.url,
                url_hash(article.url),
                article.title,
                article.text,
                article.excerpt,
                article.language,
                format_ts(article.published_at),
            ),
        )
        return int(cur.lastrowid)

    def add_reaction(self, article_id: int, reaction: Reaction) -> int:
        cur = self._execute(
            "INSERT INTO reactions (source_item_id, type) VALUES (?, ?)",
            (int(article_id), Reaction(reaction).value),
        )
        return int(cur.lastrowid)

    def count_articles(self, source: Optional[str] = None) -> int:
        if source is None:
            row = self._execute("SELECT COUNT(*) FROM source_items").fetchone()
        else:
            row = self._execute(
                """
                SELECT COUNT(*)
                FROM source_items si JOIN sources s ON s.id = si.source_id
                WHERE s.name = ?
                """,
                (source,),
            ).fetchone()
        return int(row[0] or 0)

    def list_articles(self, source: str) -> List[StoredArticle]:
        rows = self._execute(
            """
            SELECT si.id, s.name, si.url, si.title, si.excerpt, si.language, si.published_at
            FROM source_items si JOIN sources s ON s.id = si.source_id
            WHERE s.name = ?
            ORDER BY si.id
            """,
            (source,),
        ).fetchall()
        return [
            StoredArticle(
                id=int(r["id"]),
                source_name=r["name"],
                url=r["url"],
                title=r["title"] or "",
                excerpt=r["excerpt"] or "",
                language=r["language"],
                published_at=parse_ts(r["published_at"]),
            )
            for r in rows
        ]

    def count_reactions(self, article_id: int) -> int:
        row = self._execute("SELECT COUNT(*) FROM reactions WHERE source_item_id = ?", (int(article_id),)).fetchone()
        return int(row[0] or 0)


class SQLiteStore(Store):
    def __init__(self, db_path: str, *, busy_timeout: float = 30.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        try:
            # Autocommit mode; transactions are opened explicitly below.
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Database connection failed: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[SQLiteTransaction]:
        conn = self._connect()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreUnavailable(f"failed to begin transaction: {e}") from e
            yield SQLiteTransaction(conn)
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StorageError(f"failed to commit transaction: {e}") from e
        except BaseException:
            if conn.in_transaction:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error as e:
                    logger.error(f"Failed to rollback transaction: {e}")
            raise
        finally:
            conn.close()

    def create_source(self, name: str) -> int:
        with self.transaction() as tx:
            cur = tx._execute("INSERT OR IGNORE INTO sources (name) VALUES (?)", (name,))
            if cur.rowcount == 0:
                raise SourceAlreadyExists(name)
            return int(cur.lastrowid)
