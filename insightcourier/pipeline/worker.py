"""Ingestion worker.

One job = one cycle for one source, wrapped in a single store transaction:

    resolve watermark -> fetch -> for each item: retrieve, extract, persist,
    notify -> advance watermark -> commit

The watermark is the only dedup mechanism, so a cycle is all-or-nothing. If
any item fails, nothing from the batch is kept and the watermark stays put;
the next scheduled tick retries from the same point. Items before the failing
one may therefore be notified again on retry (at-least-once).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional, Tuple

from insightcourier.errors import ExtractionError, IngestError
from insightcourier.extraction.article import ExtractedArticle, extract_article
from insightcourier.extraction.flaresolverr import FlareSolverr
from insightcourier.ingestion.item_types import FeedItem, Job
from insightcourier.ingestion.rss import Fetcher
from insightcourier.ingestion.url_utils import link_error
from insightcourier.notify.telegram import Notifier
from insightcourier.pipeline.jobs import JobQueue
from insightcourier.storage.base import ArticleRecord, Store, StoreTransaction

logger = logging.getLogger(__name__)

BOOTSTRAP_WINDOW = timedelta(hours=1)


class CycleError(IngestError):
    def __init__(self, source: str, message: str, link: Optional[str] = None):
        context = f"source={source}" + (f" link={link}" if link else "")
        super().__init__(f"{message} ({context})")
        self.source = source
        self.link = link


@dataclass(frozen=True)
class CycleResult:
    source: str
    ok: bool
    items: int = 0
    persisted: int = 0
    watermark: Optional[datetime] = None
    error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Worker:
    def __init__(
        self,
        queue: JobQueue,
        store: Store,
        fetchers: Mapping[str, Fetcher],
        retriever: FlareSolverr,
        notifier: Notifier,
        *,
        extractor: Callable[[str, str], ExtractedArticle] = extract_article,
        clock: Callable[[], datetime] = _utcnow,
        poll_interval: float = 1.0,
    ):
        self.queue = queue
        self.store = store
        self.fetchers = dict(fetchers)
        self.retriever = retriever
        self.notifier = notifier
        self.extractor = extractor
        self.clock = clock
        self.poll_interval = poll_interval

    def run(self, stop: threading.Event) -> None:
        """Process jobs one at a time until `stop` is set."""
        logger.info("Worker started")
        while not stop.is_set():
            job = self.queue.get(timeout=self.poll_interval)
            if job is None:
                continue
            self.process_job(job)
        logger.info("Worker stopped")

    def process_job(self, job: Job) -> CycleResult:
        source = job.source_name
        try:
            with self.store.transaction() as tx:
                items, persisted, watermark = self._run_cycle(tx, source)
        except Exception as e:
            logger.error(f"Failed job processing: {e}")
            return CycleResult(source=source, ok=False, error=str(e))

        if items:
            logger.info(f"Source {source}: ingested {persisted} items, watermark now {watermark.isoformat()}")
        else:
            logger.info(f"Source {source}: no new items")
        return CycleResult(source=source, ok=True, items=items, persisted=persisted, watermark=watermark)

    def _run_cycle(self, tx: StoreTransaction, source: str) -> Tuple[int, int, datetime]:
        since = tx.get_watermark(source)
        if since is None:
            since = self.clock() - BOOTSTRAP_WINDOW
            logger.info(f"Source {source} has no watermark, starting from {since.isoformat()}")

        fetcher = self.fetchers.get(source)
        if fetcher is None:
            raise CycleError(source, "no fetcher configured")

        try:
            items = fetcher.fetch(since)
        except Exception as e:
            raise CycleError(source, f"failed to fetch feed: {e}") from e

        max_ts = since
        persisted = 0
        for it in items:
            if it.timestamp > max_ts:
                max_ts = it.timestamp
            try:
                article_id = self._capture(tx, source, it)
                self.notifier.send(it, article_id)
            except Exception as e:
                raise CycleError(source, f"failed to process feed item: {e}", link=it.link) from e
            persisted += 1

        # Unchanged when nothing was fetched; also pins a bootstrapped watermark.
        tx.set_watermark(source, max_ts)
        return len(items), persisted, max_ts

    def _capture(self, tx: StoreTransaction, source: str, it: FeedItem) -> int:
        """Retrieve, extract and persist one item; returns the article id."""
        reason = link_error(it.link)
        if reason:
            raise ExtractionError(f"unusable link: {reason}")

        page = self.retriever.retrieve(it.link, disable_media=True)
        page.raise_for_status()

        article = self.extractor(page.html, it.link)
        return tx.add_article(
            ArticleRecord(
                source_name=source,
                url=it.link,
                title=article.title or it.title,
                text=article.text,
                excerpt=article.excerpt,
                language=article.language,
                published_at=it.timestamp,
            )
        )
