"""Single-owner coordination for cycles and operator actions."""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from autoapply.errors import CycleInProgress


class CoordinationLock:
    """Non-blocking mutual exclusion around everything that mutates the job set.

    A second caller is rejected with CycleInProgress instead of waiting.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._holder: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    @contextmanager
    def hold(self, action: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise CycleInProgress(f"Cannot start {action}: {self._holder or 'another operation'} is in progress")
        self._holder = action
        try:
            yield
        finally:
            self._holder = None
            self._lock.release()
