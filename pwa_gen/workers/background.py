from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Runs stage units on a thread pool without making the caller wait.

    Units are responsible for reporting their own outcome; anything that
    still escapes a unit is logged here.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pwa-gen-stage")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, name: str, unit: Callable[[], None]) -> Future:
        future = self._executor.submit(unit)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(lambda done: self._finished(name, done))
        logger.debug(f"Submitted background unit {name}")
        return future

    def _finished(self, name: str, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        exc = future.exception()
        if exc is not None:
            logger.error(f"Background unit {name} crashed", exc_info=exc)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every submitted unit has finished; return False on timeout."""

        with self._lock:
            futures = list(self._pending)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
