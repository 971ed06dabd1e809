import logging
from collections import deque
from datetime import datetime
from threading import Lock
from typing import Deque, List

from tosser.models import ErrorHistoryEntry


class ErrorHistory:
    """
    Bounded record of recent operator-facing errors.

    Oldest entries are evicted once capacity is reached. Shown on the
    status page next to the statistics.
    """

    def __init__(self, capacity: int = 20):
        self._lock = Lock()
        self._entries: Deque[ErrorHistoryEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def add(self, message: str) -> None:
        with self._lock:
            self._entries.append(ErrorHistoryEntry(time=datetime.now(), message=message))

    def error(self, message: str) -> None:
        """Log at error level and remember the message."""
        logging.error(message, stacklevel=2)
        self.add(message)

    def items(self) -> List[ErrorHistoryEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
