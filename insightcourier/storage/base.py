"""Store contract shared by the Postgres and SQLite backends.

All mutation happens through a `StoreTransaction` obtained from
`Store.transaction()`. The context manager commits when the block exits
normally and rolls back on any exception, so a failed ingestion cycle never
leaves a half-written batch or an advanced watermark behind.
"""

from __future__ import annotations

import enum
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional


class Reaction(str, enum.Enum):
    LIKE = "like"
    DISLIKE = "dislike"


@dataclass(frozen=True)
class ArticleRecord:
    """Durable article derived from one feed item."""

    source_name: str
    url: str
    title: str
    text: str
    excerpt: str
    published_at: datetime
    language: Optional[str] = None


@dataclass(frozen=True)
class StoredArticle:
    id: int
    source_name: str
    url: str
    title: str
    excerpt: str
    language: Optional[str]
    published_at: datetime


def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class StoreTransaction:
    def get_watermark(self, source: str) -> Optional[datetime]:
        """Return the source's watermark, or None if it has none yet."""
        raise NotImplementedError

    def set_watermark(self, source: str, ts: datetime) -> None:
        """Advance the watermark; a value older than the stored one is ignored."""
        raise NotImplementedError

    def add_article(self, article: ArticleRecord) -> int:
        raise NotImplementedError

    def add_reaction(self, article_id: int, reaction: Reaction) -> int:
        raise NotImplementedError

    def count_articles(self, source: Optional[str] = None) -> int:
        raise NotImplementedError

    def list_articles(self, source: str) -> List[StoredArticle]:
        raise NotImplementedError

    def count_reactions(self, article_id: int) -> int:
        raise NotImplementedError


class Store:
    def create_source(self, name: str) -> int:
        """Register a source and return its id.

        Raises SourceAlreadyExists if the name is already registered.
        """
        raise NotImplementedError

    def transaction(self) -> AbstractContextManager[StoreTransaction]:
        raise NotImplementedError

    def close(self) -> None:
        pass
