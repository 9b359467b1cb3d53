"""
Periodic maintenance jobs run on worker threads.

Each job is a plain callable returning how many items it handled. The loop
waits on a ``threading.Event`` so shutdown does not have to sleep out a
whole interval.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    name: str
    interval_s: float
    job: Callable[[], int]

    def run_once(self) -> int:
        """Run the job a single time; failures are logged and count as zero."""
        try:
            handled = self.job()
        except Exception as e:
            logger.error(f"Periodic task {self.name} failed: {e}", exc_info=True)
            return 0
        if handled:
            logger.debug(f"Periodic task {self.name} handled {handled} items")
        return handled

    def run_forever(self, shutdown_event: threading.Event) -> None:
        logger.info(f"Periodic task {self.name} started (every {self.interval_s}s)")
        while not shutdown_event.wait(self.interval_s):
            self.run_once()
        logger.info(f"Periodic task {self.name} stopped")
