import argparse
import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI

from . import BUILD_TIME, __version__
from .api import stats
from .config_loader import ConfigLoader, ConfigStore, get_config_path
from .core.exceptions import ConfigError
from .dependencies import (
    get_error_history,
    get_scan_scheduler,
    get_settings,
    get_start_time,
    get_statistics_aggregator,
    get_statistics_saver,
    get_transfer_worker_pool,
    set_config_store,
)
from .logging_config import setup_logging
from .routers import views

# Global reference til background tasks
_background_tasks: List[asyncio.Task] = []


async def start_daemon() -> None:
    """Load statistics and start the saver, the transfer workers and the scan loop."""
    settings = get_settings()
    logging.info(f"File Tosser {__version__} (built {BUILD_TIME}) starting up...")
    logging.info(
        f"{len(settings.enabled_scan_groups)} of {len(settings.scan_groups)} scan groups enabled, "
        f"rescan every {settings.rescan_interval}s"
    )
    get_start_time()

    try:
        await get_statistics_aggregator().load(settings.stat_file)
    except (OSError, ValueError) as e:
        get_error_history().error(f"Could not load statistics from {settings.stat_file}: {e}")

    get_statistics_saver().start()

    await get_transfer_worker_pool().start_workers()
    logging.info("TransferWorkerPool workers startet")

    scheduler_task = asyncio.create_task(
        get_scan_scheduler().start_scanning(), name="scan-scheduler"
    )
    _background_tasks.append(scheduler_task)
    logging.info("ScanScheduler startet som background task")


async def stop_daemon() -> None:
    """Stop scanning and transfers, then write the statistics to disk."""
    logging.info("File Tosser shutting down...")

    await get_scan_scheduler().stop_scanning()

    for task in _background_tasks:
        task.cancel()
    if _background_tasks:
        await asyncio.gather(*_background_tasks, return_exceptions=True)
    _background_tasks.clear()

    await get_transfer_worker_pool().stop_workers()
    await get_statistics_saver().stop()

    logging.info("Alle background tasks stoppet")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    await start_daemon()
    yield
    await stop_daemon()


# Create FastAPI application
app = FastAPI(
    title="File Tosser",
    description="Rule-driven file distribution daemon",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(stats.router)
app.include_router(views.router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy", "service": "file-tosser"}


async def run_headless() -> None:
    """Run the daemon without the HTTP server until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    await start_daemon()
    await stop_event.wait()
    logging.info("Signal received, stopping")
    await stop_daemon()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tosser", description="Move and copy files between directories by rules"
    )
    parser.add_argument(
        "--config",
        default=get_config_path(),
        help="path to the YAML configuration file (default: %(default)s)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    loader = ConfigLoader(args.config)
    try:
        settings = loader.load()
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logging.critical(f"Could not load configuration: {e}")
        return 1

    set_config_store(ConfigStore(settings, loader))
    setup_logging(settings)
    logging.info(f"Configuration loaded from: {args.config}")

    if settings.enable_http:
        host, port = settings.listen_address
        logging.info(f"Starting status page on {host}:{port}")
        # uvicorn owns SIGINT/SIGTERM here and runs stop_daemon via the lifespan
        uvicorn.run(app, host=host, port=port, log_config=None, log_level=settings.log_level.lower())
    else:
        asyncio.run(run_headless())

    return 0


if __name__ == "__main__":
    sys.exit(main())
