"""Postgres-backed watermark/article store.

Plain psycopg + SQL. Each transaction gets its own connection, so the worker
and the feedback listener never share a transaction handle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

import psycopg

from insightcourier.ingestion.url_utils import url_hash
from insightcourier.storage.base import ArticleRecord, Reaction, Store, StoredArticle, StoreTransaction, to_utc
from insightcourier.storage.errors import SourceAlreadyExists, SourceNotFound, StorageError, StoreUnavailable
from insightcourier.storage.postgres_schema import ensure_postgres_schema

logger = logging.getLogger(__name__)


class PostgresTransaction(StoreTransaction):
    def __init__(self, conn: psycopg.Connection):
        self.conn = conn

    def _execute(self, sql: str, params=None) -> psycopg.Cursor:
        try:
            return self.conn.execute(sql, params)
        except psycopg.Error as e:
            raise StorageError(f"Postgres query failed: {e}") from e

    def get_watermark(self, source: str) -> Optional[datetime]:
        row = self._execute("SELECT last_fetched_at FROM sources WHERE name = %s", (source,)).fetchone()
        if row is None or row[0] is None:
            return None
        return to_utc(row[0])

    def set_watermark(self, source: str, ts: datetime) -> None:
        cur = self._execute(
            """
            UPDATE sources
            SET last_fetched_at = GREATEST(last_fetched_at, %s)
            WHERE name = %s
            """,
            (to_utc(ts), source),
        )
        if cur.rowcount == 0:
            raise SourceNotFound(source)

    def add_article(self, article: ArticleRecord) -> int:
        row = self._execute(
            """
            INSERT INTO source_items (
              source_id, url, url_hash, title, text_content, excerpt, language, published_at
            )
            SELECT id, %(url)s, %(url_hash)s, %(title)s, %(text)s, %(excerpt)s, %(language)s, %(published_at)s
            FROM sources
            WHERE name = %(source)s
            RETURNING id
            """,
            {
                "source": article.source_name,
                "url": article.url,
                "url_hash": url_hash(article.url),
                "title": article.title,
                "text": article.text,
                "excerpt": article.excerpt,
                "language": article.language,
                "published_at": to_utc(article.published_at),
            },
        ).fetchone()
        if row is None:
            raise SourceNotFound(article.source_name)
        return int(row[0])

    def add_reaction(self, article_id: int, reaction: Reaction) -> int:
        row = self._execute(
            "INSERT INTO reactions (source_item_id, type) VALUES (%s, %s::reaction_type) RETURNING id",
            (int(article_id), Reaction(reaction).value),
        ).fetchone()
        return int(row[0])

    def count_articles(self, source: Optional[str] = None) -> int:
        if source is None:
            row = self._execute("SELECT COUNT(*) FROM source_items").fetchone()
        else:
            row = self._execute(
                """
                SELECT COUNT(*)
                FROM source_items si JOIN sources s ON s.id = si.source_id
                WHERE s.name = %s
                """,
                (source,),
            ).fetchone()
        return int(row[0] or 0)

    def list_articles(self, source: str) -> List[StoredArticle]:
        rows = self._execute(
            """
            SELECT si.id, s.name, si.url, si.title, si.excerpt, si.language, si.published_at
            FROM source_items si JOIN sources s ON s.id = si.source_id
            WHERE s.name = %s
            ORDER BY si.id
            """,
            (source,),
        ).fetchall()
        return [
            StoredArticle(
                id=int(aid),
                source_name=name,
                url=url,
                title=title or "",
                excerpt=excerpt or "",
                language=language,
                published_at=to_utc(published_at),
            )
            for aid, name, url, title, excerpt, language, published_at in rows
        ]

    def count_reactions(self, article_id: int) -> int:
        row = self._execute("SELECT COUNT(*) FROM reactions WHERE source_item_id = %s", (int(article_id),)).fetchone()
        return int(row[0] or 0)


class PostgresStore(Store):
    def __init__(self, pg_dsn: str, *, ensure_schema: bool = True):
        self.pg_dsn = pg_dsn
        if ensure_schema:
            ensure_postgres_schema(pg_dsn)

    def _connect(self) -> psycopg.Connection:
        try:
            return psycopg.connect(self.pg_dsn)
        except psycopg.Error as e:
            raise StoreUnavailable(f"failed to connect to Postgres: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[PostgresTransaction]:
        conn = self._connect()
        try:
            yield PostgresTransaction(conn)
            try:
                conn.commit()
            except psycopg.Error as e:
                raise StorageError(f"failed to commit transaction: {e}") from e
        except BaseException:
            try:
                conn.rollback()
            except psycopg.Error as e:
                logger.error(f"Failed to rollback transaction: {e}")
            raise
        finally:
            conn.close()

    def create_source(self, name: str) -> int:
        with self.transaction() as tx:
            row = tx._execute(
                """
                INSERT INTO sources (name)
                VALUES (%s)
                ON CONFLICT (name) DO NOTHING
                RETURNING id
                """,
                (name,),
            ).fetchone()
        if row is None:
            raise SourceAlreadyExists(name)
        return int(row[0])
