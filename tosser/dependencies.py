import asyncio
from datetime import datetime
from typing import Dict, Any

from .config import Settings
from .config_loader import ConfigLoader, ConfigStore, get_config_path
from .core.error_history import ErrorHistory
from .logging_config import setup_logging
from .models import ProcessingItem
from .services.processing_cache import ProcessingCache
from .services.rule_router import RuleRouter
from .services.scanner.directory_scanner import DirectoryScanner
from .services.scanner.scan_scheduler import ScanScheduler
from .services.tracking.transfer_statistics import StatisticsAggregator, StatisticsSaver
from .services.transfer_workers import TransferWorkerPool

# Global singleton instances
_singletons: Dict[str, Any] = {}


def set_config_store(config_store: ConfigStore) -> None:
    """Install an already loaded configuration (startup and tests)."""
    _singletons["config_store"] = config_store


def get_config_store() -> ConfigStore:
    if "config_store" not in _singletons:
        loader = ConfigLoader(get_config_path())
        _singletons["config_store"] = ConfigStore(loader.load(), loader)
    return _singletons["config_store"]


def get_settings() -> Settings:
    """Hent den aktive Settings snapshot."""
    return get_config_store().current


def get_start_time() -> datetime:
    if "start_time" not in _singletons:
        _singletons["start_time"] = datetime.now().replace(microsecond=0)
    return _singletons["start_time"]


def get_error_history() -> ErrorHistory:
    if "error_history" not in _singletons:
        _singletons["error_history"] = ErrorHistory(
            capacity=get_settings().error_history_size
        )
    return _singletons["error_history"]


def get_processing_cache() -> ProcessingCache:
    if "processing_cache" not in _singletons:
        _singletons["processing_cache"] = ProcessingCache()
    return _singletons["processing_cache"]


def get_work_queue() -> "asyncio.Queue[ProcessingItem]":
    if "work_queue" not in _singletons:
        _singletons["work_queue"] = asyncio.Queue(maxsize=get_settings().queue_size)
    return _singletons["work_queue"]


def get_statistics_aggregator() -> StatisticsAggregator:
    if "statistics_aggregator" not in _singletons:
        _singletons["statistics_aggregator"] = StatisticsAggregator()
    return _singletons["statistics_aggregator"]


def get_statistics_saver() -> StatisticsSaver:
    if "statistics_saver" not in _singletons:
        settings = get_settings()
        _singletons["statistics_saver"] = StatisticsSaver(
            aggregator=get_statistics_aggregator(),
            stat_file=settings.stat_file,
            error_history=get_error_history(),
            save_interval=settings.stat_save_interval,
            queue_size=settings.stat_queue_size,
        )
    return _singletons["statistics_saver"]


def get_rule_router() -> RuleRouter:
    if "rule_router" not in _singletons:
        _singletons["rule_router"] = RuleRouter(
            config_store=get_config_store(),
            processing_cache=get_processing_cache(),
            statistics=get_statistics_saver(),
            error_history=get_error_history(),
        )
    return _singletons["rule_router"]


def get_transfer_worker_pool() -> TransferWorkerPool:
    if "transfer_worker_pool" not in _singletons:
        _singletons["transfer_worker_pool"] = TransferWorkerPool(
            work_queue=get_work_queue(),
            rule_router=get_rule_router(),
            worker_count=get_settings().max_transfer_threads,
        )
    return _singletons["transfer_worker_pool"]


def get_directory_scanner() -> DirectoryScanner:
    if "directory_scanner" not in _singletons:
        _singletons["directory_scanner"] = DirectoryScanner(
            processing_cache=get_processing_cache(),
            work_queue=get_work_queue(),
            error_history=get_error_history(),
        )
    return _singletons["directory_scanner"]


def get_scan_scheduler() -> ScanScheduler:
    if "scan_scheduler" not in _singletons:
        _singletons["scan_scheduler"] = ScanScheduler(
            config_store=get_config_store(),
            directory_scanner=get_directory_scanner(),
            error_history=get_error_history(),
            max_scan_threads=get_settings().max_scan_threads,
            on_reload=setup_logging,
        )
    return _singletons["scan_scheduler"]


def reset_singletons() -> None:
    global _singletons
    _singletons.clear()
