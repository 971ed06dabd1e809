import asyncio
import logging
import os
from typing import List, Tuple

import aiofiles.os

from tosser.config import ScanGroupConfig, Settings
from tosser.core.error_history import ErrorHistory
from tosser.models import ProcessingItem
from tosser.services.processing_cache import ProcessingCache
from tosser.utils.path_template import build_absolute_path


def _read_regular_files(directory: str) -> List[Tuple[str, int]]:
    """Name and size of every regular file directly inside directory."""
    files: List[Tuple[str, int]] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            # Kun almindelige filer: ingen mapper, symlinks eller special filer
            if not entry.is_file(follow_symlinks=False):
                continue
            try:
                size = entry.stat(follow_symlinks=False).st_size
            except FileNotFoundError:
                logging.debug(f"File disappeared while listing: {entry.path}")
                continue
            files.append((entry.name, size))
    return files


class DirectoryScanner:
    """
    Lists a scan group's source directories and feeds the work queue.

    Directories and files are claimed in the processing cache so that
    overlapping passes neither list a directory twice nor enqueue a file
    that is already on its way.
    """

    def __init__(
        self,
        processing_cache: ProcessingCache,
        work_queue: "asyncio.Queue[ProcessingItem]",
        error_history: ErrorHistory,
    ):
        self.processing_cache = processing_cache
        self.work_queue = work_queue
        self.error_history = error_history

    async def scan_group(self, group: ScanGroupConfig, settings: Settings) -> int:
        """Scan every source directory of group. Returns the number of files enqueued."""
        enqueued = 0
        for src_dir in group.src_dirs:
            enqueued += await self.scan_directory(src_dir, group, settings)
        return enqueued

    async def scan_directory(
        self, src_template: str, group: ScanGroupConfig, settings: Settings
    ) -> int:
        try:
            full_src_dir = build_absolute_path(src_template)
        except (ValueError, OSError) as e:
            self.error_history.error(f"Cannot resolve source path {src_template}: {e}")
            return 0

        logging.debug(f"Scanning directory {full_src_dir} (group {group.name})")

        if self.processing_cache.check(full_src_dir):
            logging.debug(f"Directory is already being scanned: {full_src_dir}")
            return 0

        if not await self._ensure_source_dir(full_src_dir, group):
            return 0

        self.processing_cache.add(full_src_dir)
        try:
            files = await asyncio.to_thread(_read_regular_files, full_src_dir)
            return await self._submit_files(files, full_src_dir, group, settings)
        except OSError as e:
            self.error_history.error(f"Cannot list files in {full_src_dir}: {e}")
            return 0
        finally:
            self.processing_cache.delete(full_src_dir)
            logging.debug(f"Finished scanning directory {full_src_dir}")

    async def _ensure_source_dir(self, full_src_dir: str, group: ScanGroupConfig) -> bool:
        try:
            await aiofiles.os.stat(full_src_dir)
            return True
        except FileNotFoundError:
            pass
        except OSError as e:
            self.error_history.error(f"Cannot access source directory {full_src_dir}: {e}")
            return False

        if not group.create_src:
            logging.debug(
                f"Source directory {full_src_dir} does not exist and create_src is off, skipping"
            )
            return False

        logging.info(f"Creating source directory {full_src_dir}")
        try:
            await aiofiles.os.makedirs(full_src_dir, exist_ok=True)
        except OSError as e:
            self.error_history.error(f"Cannot create source directory {full_src_dir}: {e}")
            return False
        return True

    async def _submit_files(
        self,
        files: List[Tuple[str, int]],
        full_src_dir: str,
        group: ScanGroupConfig,
        settings: Settings,
    ) -> int:
        enqueued = 0
        for src_file, size in files:
            if settings.is_excluded(src_file) or group.is_excluded(src_file):
                continue

            src_path = os.path.join(full_src_dir, src_file)
            if self.processing_cache.check(src_path):
                logging.debug(f"File is already being processed: {src_path}")
                continue

            self.processing_cache.add(src_path)
            # Blokerer når køen er fuld (back-pressure på scanningen)
            await self.work_queue.put(
                ProcessingItem(
                    src_file=src_file,
                    src_path=src_path,
                    scan_group=group,
                    size=size,
                    settings=settings,
                )
            )
            enqueued += 1

        if enqueued:
            logging.info(f"Queued {enqueued} files from {full_src_dir}")
        return enqueued
