"""Queue of dependencies waiting for the user's update decision."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, List

from nodestrap.core.errors import InvariantViolation
from nodestrap.core.logging import get_logger

LOGGER = get_logger(__name__)

# Holding the lock this long means something is badly wrong
DEFAULT_LOCK_TIMEOUT = 5.0


class PendingUpdateQueue:
    """Ordered set of dependency names classified as needing an update.

    Written by the reconciliation task and drained exactly once by the
    update task. Each name is enqueued at most once; ``drain`` hands out
    a snapshot and releases the lock before any process is spawned.
    """

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self._names: List[str] = []
        self._drained = False
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise InvariantViolation("Failed to lock the pending update queue")
        try:
            yield
        finally:
            self._lock.release()

    def enqueue(self, name: str) -> bool:
        """Add a name; returns False if it is already queued.

        Raises:
            InvariantViolation: If the queue has already been drained.
        """
        with self._locked():
            if self._drained:
                raise InvariantViolation(f"Cannot enqueue {name}: update queue already drained")
            if name in self._names:
                LOGGER.debug(f"{name} already queued for update")
                return False
            self._names.append(name)
            return True

    def drain(self) -> List[str]:
        """Take every queued name, in enqueue order. Later calls return []."""
        with self._locked():
            if self._drained:
                return []
            names, self._names = self._names, []
            self._drained = True
            return names

    def snapshot(self) -> List[str]:
        with self._locked():
            return list(self._names)

    @property
    def drained(self) -> bool:
        with self._locked():
            return self._drained

    def __len__(self) -> int:
        with self._locked():
            return len(self._names)
