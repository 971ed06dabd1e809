import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from tosser.models import ProcessingItem
from tosser.services.rule_router import RuleRouter


class TransferWorkerPool:
    """Fixed set of workers draining the shared bounded work queue."""

    def __init__(
            self,
            work_queue: "asyncio.Queue[ProcessingItem]",
            rule_router: RuleRouter,
            worker_count: int,
    ):
        self.work_queue = work_queue
        self.rule_router = rule_router

        # Worker management
        self._workers: List[asyncio.Task] = []
        self._running = False
        self._worker_count = worker_count

        # Statistics
        self._total_items_processed = 0
        self._start_time: Optional[datetime] = None

        logging.info(
            f"TransferWorkerPool initialiseret med {self._worker_count} workers"
        )

    async def start_workers(self) -> None:
        if self._running:
            logging.warning("Workers are already running")
            return

        self._running = True
        self._start_time = datetime.now()

        for i in range(self._worker_count):
            worker_task = asyncio.create_task(
                self._worker_loop(f"worker-{i + 1}"), name=f"transfer-worker-{i + 1}"
            )
            self._workers.append(worker_task)

        logging.info(f"Started {len(self._workers)} transfer workers")

    async def stop_workers(self) -> None:
        if not self._running:
            return

        self._running = False
        logging.info("Stopping transfer workers...")

        for worker in self._workers:
            if not worker.done():
                worker.cancel()

        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)

        self._workers.clear()
        logging.info("All transfer workers stopped")

    async def _worker_loop(self, worker_id: str) -> None:
        while self._running:
            item = await self.work_queue.get()
            try:
                await self.rule_router.process_item(item)
                self._total_items_processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logging.error(
                    f"Worker {worker_id} error processing {item.src_path}: {e}",
                    exc_info=True,
                )
            finally:
                self.work_queue.task_done()

    def is_running(self) -> bool:
        return self._running

    def get_worker_info(self) -> dict:
        return {
            "is_running": self._running,
            "worker_count": self._worker_count,
            "active_workers": sum(1 for w in self._workers if not w.done()),
            "queued_items": self.work_queue.qsize(),
            "total_items_processed": self._total_items_processed,
            "started_at": self._start_time.isoformat() if self._start_time else None,
        }
