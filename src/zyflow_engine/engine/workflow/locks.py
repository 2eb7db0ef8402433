"""In-process exclusion so a workflow has at most one pass in flight."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class WorkflowLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, workflow_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(workflow_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[workflow_id] = lock
            return lock

    @contextmanager
    def hold(self, workflow_id: str) -> Iterator[bool]:
        """Try to take the workflow's lock without waiting.

        Yields True if this caller owns the workflow for the duration of the
        block, False if another pass is already running it.
        """

        lock = self._lock_for(workflow_id)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()
