"""
Transfer statistics for File Tosser.

StatisticsAggregator holds per-day, per-destination-directory counters and
persists them as a JSON snapshot. StatisticsSaver is the dedicated task that
receives TransferRecords from the workers, accumulates them and saves the
snapshot periodically.
"""

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from tosser.core.error_history import ErrorHistory
from tosser.models import DirStat, DirStatEntry, StatSnapshot, TransferRecord
from tosser.utils.file_operations import create_temp_file_path

DATE_FORMAT = "%Y-%m-%d"


def day_key(when: Optional[datetime] = None) -> str:
    return (when or datetime.now()).strftime(DATE_FORMAT)


class StatisticsAggregator:
    """
    Thread-safe accumulation of transfer counts and bytes.

    All mutation goes through accumulate() and load(); readers get copies.
    """

    def __init__(self):
        self._lock = Lock()
        self._dates: Dict[str, Dict[str, DirStat]] = {}

    def accumulate(self, record: TransferRecord, when: Optional[datetime] = None) -> None:
        """Count the record's item once in each destination directory it reached."""
        key = day_key(when)
        with self._lock:
            day = self._dates.setdefault(key, {})
            for dst_dir in record.dst_dirs:
                stat = day.setdefault(dst_dir, DirStat())
                stat.count += 1
                stat.bytes += record.item.size

    def snapshot(self) -> StatSnapshot:
        with self._lock:
            return StatSnapshot(dates=self._dates).model_copy(deep=True)

    def day_snapshot(self, day: Optional[str] = None) -> List[DirStatEntry]:
        """One day's statistics sorted by destination directory."""
        with self._lock:
            stats = self._dates.get(day or day_key(), {})
            return [
                DirStatEntry(dir=dst_dir, count=stats[dst_dir].count, bytes=stats[dst_dir].bytes)
                for dst_dir in sorted(stats)
            ]

    async def save(self, path: str) -> None:
        """
        Write the full state to path, replacing any previous snapshot.

        The snapshot is written to a temp file next to the target first, so a
        crash mid-write never leaves a truncated statistics file.
        """
        payload = self.snapshot().model_dump_json(indent=2)
        target = Path(path)
        temp_path = create_temp_file_path(target)

        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(payload)
        await aiofiles.os.replace(temp_path, target)
        logging.debug(f"Statistics saved to {target}")

    async def load(self, path: str) -> bool:
        """
        Replace the in-memory state with a saved snapshot.

        Returns False when no snapshot exists (start empty).

        Raises:
            OSError: snapshot exists but cannot be read
            ValueError: snapshot is not valid statistics JSON
        """
        if not await aiofiles.os.path.exists(path):
            logging.info(f"No statistics file at {path}, starting empty")
            return False

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()

        try:
            snapshot = StatSnapshot.model_validate_json(raw)
        except ValidationError as e:
            raise ValueError(f"Invalid statistics file {path}: {e}") from e

        with self._lock:
            self._dates = snapshot.dates
        logging.info(f"Statistics loaded from {path} ({len(snapshot.dates)} days)")
        return True


class StatisticsSaver:
    """
    Dedicated task that feeds the aggregator and persists it.

    report() only blocks when the queue is saturated. A failed save keeps
    the state in memory and is retried at the next trigger.
    """

    def __init__(
        self,
        aggregator: StatisticsAggregator,
        stat_file: str,
        error_history: ErrorHistory,
        save_interval: float = 10.0,
        queue_size: int = 100,
    ):
        self.aggregator = aggregator
        self.stat_file = stat_file
        self.error_history = error_history
        self.save_interval = save_interval
        self.queue: asyncio.Queue[TransferRecord] = asyncio.Queue(maxsize=queue_size)

        self._running = False
        self._dirty = False
        self._last_save = time.monotonic()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    async def report(self, record: TransferRecord) -> None:
        await self.queue.put(record)

    def start(self) -> None:
        if self._running:
            logging.warning("StatisticsSaver er allerede startet")
            return
        self._running = True
        self._task = asyncio.create_task(self._save_loop(), name="stat-saver")
        logging.info(f"StatisticsSaver startet (file: {self.stat_file})")

    async def stop(self) -> None:
        """Stop the loop, accumulate anything still queued and save."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

        while not self.queue.empty():
            self._accumulate(self.queue.get_nowait())
        await self.flush()

    async def flush(self) -> bool:
        """Save now. Returns False if the save failed."""
        try:
            await self.aggregator.save(self.stat_file)
        except OSError as e:
            self.error_history.error(f"Could not save statistics to {self.stat_file}: {e}")
            return False
        self._dirty = False
        self._last_save = time.monotonic()
        return True

    def _accumulate(self, record: TransferRecord) -> None:
        self.aggregator.accumulate(record)
        self._dirty = True

    async def _save_loop(self) -> None:
        try:
            while self._running:
                try:
                    record = await asyncio.wait_for(
                        self.queue.get(), timeout=max(self.save_interval, 0.1)
                    )
                    self._accumulate(record)
                except asyncio.TimeoutError:
                    pass

                if self._dirty and time.monotonic() - self._last_save >= self.save_interval:
                    await self.flush()
        except asyncio.CancelledError:
            logging.info("StatisticsSaver blev cancelled")
            raise
