"""
Order dispatcher.

Runs live order submissions off the tick loop on a small worker pool with a
bounded number of outstanding tasks. The tick loop never waits on a
submission; outcomes are reported by the task itself.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Set
import logging
import threading

logger = logging.getLogger(__name__)


class OrderDispatcher:
    """
    Bounded fire-and-forget task set.

    On shutdown, queued submissions that have not started are cancelled;
    submissions already on the wire are left to finish on their own and
    their results are still reported through the notification sink.
    """

    def __init__(self, max_workers: int = 4, max_pending: int = 16):
        self.max_pending = max(1, int(max_pending))
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)),
            thread_name_prefix="tickbot-order",
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        """
        Schedule fn without waiting for it.

        Returns:
            The task future, or None if the dispatcher is closed or full
        """
        with self._lock:
            if self._closed:
                logger.warning("Order dispatcher is shut down; dropping submission")
                return None
            if len(self._pending) >= self.max_pending:
                logger.warning("Order dispatcher full (%d pending); dropping submission", len(self._pending))
                return None
            future = self._executor.submit(fn, *args, **kwargs)
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Order task failed: %s", future.exception())

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def shutdown(self) -> None:
        """Cancel queued submissions and stop accepting new ones. Does not wait."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
