import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Set

from tosser.config import ScanGroupConfig, Settings
from tosser.config_loader import ConfigStore
from tosser.core.error_history import ErrorHistory
from tosser.core.exceptions import ConfigError, ConfigNotModifiedError
from .directory_scanner import DirectoryScanner


class ScanScheduler:
    """
    Runs scan passes on a fixed interval and reloads configuration between them.

    Each enabled scan group is scanned in its own task. The semaphore bounds
    the number of scan tasks alive across all passes, so a pass does not wait
    for the previous one; it only blocks on dispatch when every slot is taken.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        directory_scanner: DirectoryScanner,
        error_history: ErrorHistory,
        max_scan_threads: int,
        on_reload: Optional[Callable[[Settings], None]] = None,
    ):
        self.config_store = config_store
        self.directory_scanner = directory_scanner
        self.error_history = error_history
        self._on_reload = on_reload
        self._semaphore = asyncio.Semaphore(max_scan_threads)
        self._scan_tasks: Set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None
        self._running = False
        self._pass_count = 0

        logging.info(f"ScanScheduler initialized (max {max_scan_threads} concurrent scans)")

    @property
    def active_scans(self) -> int:
        return len(self._scan_tasks)

    async def start_scanning(self) -> None:
        if self._running:
            logging.warning("Scanner is already running")
            return

        self._running = True
        self._loop_task = asyncio.current_task()
        logging.info("Scan scheduler started")

        try:
            await self._scan_loop()
        except asyncio.CancelledError:
            logging.info("Scan scheduler was cancelled")
            raise
        finally:
            self._running = False
            self._loop_task = None
            logging.info("Scan scheduler stopped")

    async def stop_scanning(self) -> None:
        """
        Stop the scan loop first, then cancel the scans it dispatched.

        The loop must be gone before the scans are cancelled; otherwise it
        can grab a slot freed by a cancelled scan and dispatch a new one.
        """
        self._running = False
        logging.info("Scan scheduler stop requested")

        loop_task = self._loop_task
        if loop_task is not None and loop_task is not asyncio.current_task() and not loop_task.done():
            loop_task.cancel()
            await asyncio.gather(loop_task, return_exceptions=True)

        while self._scan_tasks:
            scan_tasks = list(self._scan_tasks)
            for task in scan_tasks:
                task.cancel()
            await asyncio.gather(*scan_tasks, return_exceptions=True)
            self._scan_tasks.difference_update(scan_tasks)

    async def _scan_loop(self) -> None:
        while self._running:
            try:
                await self.run_pass()
                self.reload_config()
                await asyncio.sleep(self.config_store.current.rescan_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logging.error(f"Error in scan pass: {e}", exc_info=True)
                await asyncio.sleep(5)

    async def run_pass(self) -> int:
        """Dispatch one scan task per enabled group. Returns the number dispatched."""
        settings = self.config_store.current
        pass_start = datetime.now()
        dispatched = 0

        for group in settings.enabled_scan_groups:
            # Pauser her hvis alle scan slots er optaget
            await self._semaphore.acquire()
            task = asyncio.create_task(
                self._scan_group(group, settings), name=f"scan-{group.name}"
            )
            self._scan_tasks.add(task)
            task.add_done_callback(self._scan_tasks.discard)
            dispatched += 1

        self._pass_count += 1
        dispatch_duration = (datetime.now() - pass_start).total_seconds()
        logging.debug(
            f"Scan pass {self._pass_count}: dispatched {dispatched} groups in {dispatch_duration:.2f}s"
        )
        return dispatched

    async def wait_for_scans(self) -> None:
        """Wait until every scan task dispatched so far has finished."""
        if self._scan_tasks:
            await asyncio.gather(*list(self._scan_tasks), return_exceptions=True)

    async def _scan_group(self, group: ScanGroupConfig, settings: Settings) -> None:
        try:
            await self.directory_scanner.scan_group(group, settings)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error_history.error(f"Unexpected error scanning group {group.name}: {e}")
        finally:
            self._semaphore.release()

    def reload_config(self) -> bool:
        """Swap in a changed configuration file. Returns True if a new one is active."""
        try:
            new_settings = self.config_store.reload()
        except ConfigNotModifiedError:
            return False
        except ConfigError as e:
            self.error_history.error(f"Configuration reload failed, keeping current: {e}")
            return False

        logging.info("Reloading configuration file")
        if self._on_reload is not None:
            try:
                self._on_reload(new_settings)
            except (OSError, ValueError) as e:
                self.error_history.error(f"Error applying reloaded configuration: {e}")
                return False

        self.config_store.swap(new_settings)
        return True
