"""Shared ingestion data types."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class FeedItem:
    """Candidate item discovered during a fetch.

    Items are transient; only the article extracted from `link` is persisted.
    """

    source: str
    title: str
    link: str
    timestamp: datetime
    description: Optional[str] = None


@dataclass(frozen=True)
class Job:
    """Fetch trigger for one source, consumed exactly once by the worker."""

    source_name: str


def _struct_to_dt(st: Any) -> Optional[datetime]:
    if not st:
        return None
    try:
        return datetime.fromtimestamp(calendar.timegm(st), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def item_timestamp(entry: Mapping[str, Any], now: Optional[datetime] = None) -> datetime:
    """Freshness of a feed entry: updated, else published, else `now`."""
    for key in ("updated_parsed", "published_parsed"):
        # membership first: feedparser's get() aliases updated to published
        dt = _struct_to_dt(entry.get(key)) if key in entry else None
        if dt is not None:
            return dt
    return now or datetime.now(timezone.utc)
