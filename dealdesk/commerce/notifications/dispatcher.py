"""
Fire-and-forget notification dispatch.

Notifications must never slow down or fail a negotiation step, so the
engines submit them here and return immediately. Every task is tracked
until it finishes; failures are logged with the task label.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class NotificationDispatcher:
    """Runs notification tasks on a thread pool.

    Args:
        max_workers: Pool size when the dispatcher owns its executor
        executor: Optional externally managed executor
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="dealdesk-notify"
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False
        self.failures = 0

    def dispatch(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        """Schedule fn(*args, **kwargs). Returns None if the dispatcher is closed."""
        with self._lock:
            if self._closed:
                logger.warning("Dispatcher closed, dropping notification task %s", label)
                return None
            future = self._executor.submit(fn, *args, **kwargs)
            self._pending.add(future)
        future.add_done_callback(lambda f: self._on_done(label, f))
        return future

    def _on_done(self, label: str, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            logger.warning("Notification task %s was cancelled", label)
            return
        exc = future.exception()
        if exc is not None:
            with self._lock:
                self.failures += 1
            logger.error("Notification task %s failed: %s", label, exc, exc_info=exc)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight tasks. Returns True if all finished in time.

        Tasks submitted by tasks (none today) are picked up on the next loop.
        """
        while True:
            with self._lock:
                pending = set(self._pending)
            if not pending:
                return True
            done, not_done = wait_futures(pending, timeout=timeout)
            if not_done:
                logger.warning("%d notification tasks still running after flush", len(not_done))
                return False
            # done-callbacks may not have run yet; drop what we already waited on
            with self._lock:
                self._pending.difference_update(done)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks and release the pool."""
        with self._lock:
            self._closed = True
        if wait:
            self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)


class InlineDispatcher:
    """Runs tasks synchronously. Same error handling, no threads."""

    def __init__(self):
        self.failures = 0

    def dispatch(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            fn(*args, **kwargs)
        except Exception as e:
            self.failures += 1
            logger.error("Notification task %s failed: %s", label, e, exc_info=True)
        return None

    def flush(self, timeout: Optional[float] = None) -> bool:
        return True

    def shutdown(self, wait: bool = True) -> None:
        return None
