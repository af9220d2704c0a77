"""Per-source recurring triggers.

Every source gets its own thread and its own `schedule.Scheduler`, so a slow
action for one source only delays that source's next tick. Ticks missed
while an action blocks are not queued up; the next one simply fires late.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

import schedule

from insightcourier.errors import ConfigError

logger = logging.getLogger(__name__)


class Planner:
    def __init__(self, stop: Optional[threading.Event] = None):
        self.stop_event = stop or threading.Event()
        self._threads: List[threading.Thread] = []

    def schedule(self, source_name: str, interval: float, action: Callable[[], object]) -> threading.Thread:
        """Run `action` now and then every `interval` seconds until stopped."""
        if interval <= 0:
            raise ConfigError(f"update interval for source {source_name} must be positive, got {interval}")
        thread = threading.Thread(
            target=self._run,
            args=(source_name, interval, action),
            name=f"planner-{source_name}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()
        logger.info(f"Scheduled source {source_name} every {interval:g}s")
        return thread

    def _fire(self, source_name: str, action: Callable[[], object]) -> None:
        try:
            action()
        except Exception as e:
            logger.error(f"Scheduled action for source {source_name} failed: {e}", exc_info=True)

    def _run(self, source_name: str, interval: float, action: Callable[[], object]) -> None:
        scheduler = schedule.Scheduler()
        scheduler.every(interval).seconds.do(self._fire, source_name, action)
        # run_all fires immediately and reschedules relative to completion
        scheduler.run_all()
        while not self.stop_event.wait(self._idle(scheduler)):
            scheduler.run_pending()
        scheduler.clear()
        logger.debug(f"Planner for source {source_name} stopped")

    @staticmethod
    def _idle(scheduler: schedule.Scheduler) -> float:
        idle = scheduler.idle_seconds
        if idle is None:
            return 1.0
        return max(0.0, idle)

    def stop(self) -> None:
        self.stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)
