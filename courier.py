#!/usr/bin/env python3
"""InsightCourier: feed ingestion worker.

Polls every configured RSS source on its own interval, captures new articles
through FlareSolverr + trafilatura, stores them and announces them on
Telegram with 👍/👎 buttons whose presses are recorded as reactions.

Modes:
- default: run scheduled until SIGINT/SIGTERM
- --once: run one cycle per source and exit
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import Dict, List

from insightcourier.config import Config
from insightcourier.errors import ConfigError
from insightcourier.extraction.flaresolverr import FlareSolverr
from insightcourier.ingestion.item_types import Job
from insightcourier.ingestion.rss import Fetcher, RSSFetcher
from insightcourier.notify.telegram import TelegramNotifier
from insightcourier.pipeline.jobs import JobQueue
from insightcourier.pipeline.planner import Planner
from insightcourier.pipeline.worker import Worker
from insightcourier.storage.base import Store
from insightcourier.storage.errors import SourceAlreadyExists
from insightcourier.storage.factory import open_store

logger = logging.getLogger("insightcourier")


def setup_logging(config: Config) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def register_sources(store: Store, names) -> None:
    """Create every source row; existing ones are left alone."""
    for name in names:
        try:
            sid = store.create_source(name)
        except SourceAlreadyExists:
            logger.debug(f"Source already created: {name}")
            continue
        logger.info(f"New source created: {name} (id {sid})")


def build_worker(config: Config, store: Store, queue: JobQueue, notifier: TelegramNotifier) -> Worker:
    fetchers: Dict[str, Fetcher] = {
        name: RSSFetcher(src.feed_url, timeout=config.request_timeout, source_name=name)
        for name, src in config.sources.items()
    }
    return Worker(
        queue=queue,
        store=store,
        fetchers=fetchers,
        retriever=FlareSolverr(url=config.flaresolverr_url),
        notifier=notifier,
    )


def run_once(config: Config, store: Store, notifier: TelegramNotifier) -> int:
    worker = build_worker(config, store, JobQueue(), notifier)
    failed = 0
    for name in config.sources:
        result = worker.process_job(Job(source_name=name))
        if not result.ok:
            failed += 1
    logger.info(f"Completed {len(config.sources)} cycles, {failed} failed")
    return 1 if failed else 0


def run_scheduled(config: Config, store: Store, notifier: TelegramNotifier) -> int:
    stop = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    queue = JobQueue(maxsize=config.queue_size)
    worker = build_worker(config, store, queue, notifier)

    worker_thread = threading.Thread(target=worker.run, args=(stop,), name="worker")
    feedback_thread = threading.Thread(target=notifier.poll_feedback, args=(stop,), name="telegram-feedback", daemon=True)
    worker_thread.start()
    feedback_thread.start()

    planner = Planner(stop)
    for name, src in config.sources.items():
        planner.schedule(name, src.update_interval, lambda name=name: queue.put(Job(source_name=name), stop))

    stop.wait()
    planner.join(timeout=5)
    # An in-flight cycle runs to completion before the worker exits.
    worker_thread.join()
    logger.info("Shutdown complete")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Poll RSS feeds and deliver new articles to Telegram")
    parser.add_argument("--config", default=None, help="Path to the sources JSON file (default: $IC_CONFIG_PATH)")
    parser.add_argument("--once", action="store_true", help="Run one cycle for every source and exit")
    args = parser.parse_args(argv)

    try:
        config = Config.from_env(args.config)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(str(e))
        return 2

    setup_logging(config)

    store = open_store(config.storage_dsn)
    try:
        register_sources(store, config.sources)
        notifier = TelegramNotifier(
            config.telegram_bot_token,
            config.telegram_chat_id,
            store,
            request_timeout=config.request_timeout,
        )
        if args.once:
            return run_once(config, store, notifier)
        return run_scheduled(config, store, notifier)
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
