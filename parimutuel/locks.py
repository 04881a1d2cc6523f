import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Optional

from .config import settings
from .errors import LockTimeoutError

logger = logging.getLogger(__name__)


def event_lock(event_id: str) -> str:
    return f"event:{event_id}"


def user_lock(user_id: str) -> str:
    return f"user:{user_id}"


USERS_INDEX_LOCK = "index:users"
EVENTS_INDEX_LOCK = "index:events"


class LockRegistry:
    """
    Named mutexes, created on first use.

    `hold()` takes its keys in sorted order under one shared deadline, so two
    callers asking for overlapping key sets can never wait on each other in a
    cycle. Nothing ever waits longer than the timeout.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: str, timeout: Optional[float] = None):
        wait = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        acquired = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=max(0.0, deadline - time.monotonic())):
                    logger.warning(f"Gave up waiting for {key} after {wait:.2f}s")
                    raise LockTimeoutError(f"Timed out waiting for {key}")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
