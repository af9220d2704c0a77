"""Job queue between the planner and the worker.

Backpressure policy is "block": a producer that finds the queue full waits,
logging once, and gives up only when cancellation is requested.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

from insightcourier.ingestion.item_types import Job

logger = logging.getLogger(__name__)


class JobQueue:
    def __init__(self, maxsize: int = 0, *, put_slice: float = 1.0):
        self._queue: "queue.Queue[Job]" = queue.Queue(maxsize=maxsize)
        self.maxsize = maxsize
        self.put_slice = put_slice

    def put(self, job: Job, stop: Optional[threading.Event] = None) -> bool:
        """Enqueue `job`, blocking while the queue is full.

        Returns False if `stop` was set before the job could be enqueued.
        """
        warned = False
        while True:
            try:
                self._queue.put(job, timeout=self.put_slice)
                return True
            except queue.Full:
                if not warned:
                    logger.warning(f"Job queue full ({self.maxsize}), blocking enqueue for source {job.source_name}")
                    warned = True
                if stop is not None and stop.is_set():
                    logger.warning(f"Dropping job for source {job.source_name}: shutting down")
                    return False

    def get(self, timeout: Optional[float] = None) -> Optional[Job]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()
