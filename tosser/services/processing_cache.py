from threading import Lock
from typing import Set


class ProcessingCache:
    """
    Set of absolute paths (directories and files) currently in flight.

    This is a best-effort dedup guard, not a lock: check, add and delete are
    each atomic, but check-then-add is not. Two passes may both see a path as
    free before either adds it. That only leads to a duplicate listing or a
    duplicate enqueue attempt; downstream effects are idempotent.
    """

    def __init__(self):
        self._lock = Lock()
        self._paths: Set[str] = set()

    def check(self, path: str) -> bool:
        with self._lock:
            return path in self._paths

    def add(self, path: str) -> None:
        with self._lock:
            self._paths.add(path)

    def delete(self, path: str) -> None:
        with self._lock:
            self._paths.discard(path)

    def snapshot(self) -> Set[str]:
        with self._lock:
            return set(self._paths)

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
