
from __future__ import annotations

import threading
from typing import Optional

from .models import ResultSet


class CacheState:
    """Holds the current ResultSet; the refresh cycle swaps it, readers never see a partial one.

    Only the scheduler's cycle writes. Everything else reads `current`.
    """

    def __init__(self, initial: Optional[ResultSet] = None):
        self._lock = threading.Lock()
        self._current = initial or ResultSet()
        self.is_loading = False
        self.error: Optional[str] = None

    @property
    def current(self) -> ResultSet:
        with self._lock:
            return self._current

    def begin(self) -> None:
        with self._lock:
            self.is_loading = True
            self.error = None

    def replace(self, result: ResultSet) -> None:
        with self._lock:
            self._current = result
            self.is_loading = False
            self.error = None

    def fail(self, message: str) -> None:
        with self._lock:
            self.is_loading = False
            self.error = message
