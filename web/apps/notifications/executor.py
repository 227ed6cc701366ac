"""Where detached notification work runs.

``DetachedExecutor`` is a bounded thread pool: when ``NOTIFY_MAX_PENDING``
tasks are already queued or running, new ones are dropped with a warning
instead of piling up. Tasks still queued when the process exits are lost;
delivery is at-most-once.

``InlineExecutor`` runs the task immediately and is selected with
``NOTIFY_DISPATCH_MODE=inline`` (tests, one-off commands).
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from django.conf import settings
from django.db import connections

logger = logging.getLogger(__name__)


class InlineExecutor:
    def submit(self, fn: Callable, *args, **kwargs) -> bool:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("notification task failed")
        return True

    def shutdown(self, wait: bool = True):
        return None


class DetachedExecutor:
    """Bounded fire-and-forget pool. Task results are discarded."""

    def __init__(self, max_workers: int, max_pending: int):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        self._slots = threading.BoundedSemaphore(max(1, max_pending))

    def _run(self, fn, args, kwargs):
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("notification task failed")
        finally:
            self._slots.release()
            # worker threads open their own DB connections
            try:
                connections.close_all()
            except Exception:
                logger.warning("closing notification worker connections failed", exc_info=True)

    def submit(self, fn: Callable, *args, **kwargs) -> bool:
        """Queue ``fn``. Returns False when the pool is saturated and the task was dropped."""
        if not self._slots.acquire(blocking=False):
            logger.warning("notification queue full, task dropped", extra={"task": getattr(fn, "__name__", "?")})
            return False
        try:
            self._pool.submit(self._run, fn, args, kwargs)
        except RuntimeError:
            # pool already shut down
            self._slots.release()
            logger.warning("notification executor closed, task dropped")
            return False
        return True

    def shutdown(self, wait: bool = True):
        self._pool.shutdown(wait=wait)


_lock = threading.Lock()
_executor: Optional[DetachedExecutor] = None
_inline = InlineExecutor()


def get_executor():
    """Return the executor for the configured ``NOTIFY_DISPATCH_MODE``."""
    global _executor
    if getattr(settings, "NOTIFY_DISPATCH_MODE", "thread") == "inline":
        return _inline
    with _lock:
        if _executor is None:
            _executor = DetachedExecutor(
                max_workers=getattr(settings, "NOTIFY_MAX_WORKERS", 4),
                max_pending=getattr(settings, "NOTIFY_MAX_PENDING", 256),
            )
        return _executor


def shutdown_executor(wait: bool = True):
    global _executor
    with _lock:
        if _executor is not None:
            _executor.shutdown(wait=wait)
            _executor = None
