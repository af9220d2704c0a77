"""RSS/Atom content fetcher.

A fetcher returns only the items strictly newer than the watermark it is
given, in feed order. Format parsing is delegated to feedparser.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import feedparser
import requests

from insightcourier.errors import FetchError
from insightcourier.ingestion.item_types import FeedItem, item_timestamp

logger = logging.getLogger(__name__)

USER_AGENT = "InsightCourier/1.0"


class Fetcher:
    def fetch(self, since: datetime) -> List[FeedItem]:
        raise NotImplementedError


def items_since(parsed, source: str, since: datetime, *, now: Optional[datetime] = None) -> List[FeedItem]:
    """Convert parsed feed entries to items newer than `since` (exclusive)."""
    now = now or datetime.now(timezone.utc)
    out: List[FeedItem] = []
    for entry in parsed.entries or []:
        link = (entry.get("link") or "").strip()
        if not link:
            continue
        ts = item_timestamp(entry, now)
        if ts <= since:
            continue
        summary = entry.get("summary")
        out.append(
            FeedItem(
                source=source,
                title=str(entry.get("title") or "").strip(),
                description=summary.strip() if isinstance(summary, str) else None,
                link=link,
                timestamp=ts,
            )
        )
    return out


@dataclass(frozen=True)
class RSSFetcher(Fetcher):
    """Fetcher for a single feed URL."""

    feed_url: str
    timeout: int = 30
    source_name: str = ""

    def fetch(self, since: datetime) -> List[FeedItem]:
        try:
            resp = requests.get(
                self.feed_url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"failed to fetch feed {self.feed_url}: {e}") from e

        parsed = feedparser.parse(resp.content)
        if parsed.bozo and not parsed.entries:
            raise FetchError(f"failed to parse feed {self.feed_url}: {parsed.get('bozo_exception')}")

        items = items_since(parsed, self.source_name or self.feed_url, since)
        logger.debug(f"Feed {self.feed_url}: {len(parsed.entries)} entries, {len(items)} newer than {since.isoformat()}")
        return items
