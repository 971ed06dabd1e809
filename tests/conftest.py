"""
Pytest configuration og shared fixtures.
"""

import asyncio

import pytest

from tosser.config import RuleConfig, ScanGroupConfig, Settings
from tosser.config_loader import ConfigStore
from tosser.core.error_history import ErrorHistory
from tosser.dependencies import reset_singletons, set_config_store
from tosser.services.processing_cache import ProcessingCache
from tosser.services.tracking.transfer_statistics import StatisticsAggregator, StatisticsSaver


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    yield
    reset_singletons()


@pytest.fixture
def settings(tmp_path):
    """Settings with log and statistics files inside tmp_path."""
    return Settings(
        stat_file=str(tmp_path / "tmp" / "stat.json"),
        log_file_path=str(tmp_path / "logs" / "tosser.log"),
        transfer_log_path=str(tmp_path / "logs" / "transfers.log"),
        rescan_interval=0,
        stat_save_interval=0,
    )


@pytest.fixture
def config_store(settings):
    store = ConfigStore(settings)
    set_config_store(store)
    return store


@pytest.fixture
def error_history():
    return ErrorHistory(capacity=10)


@pytest.fixture
def processing_cache():
    return ProcessingCache()


@pytest.fixture
def statistics_saver(settings, error_history):
    return StatisticsSaver(
        aggregator=StatisticsAggregator(),
        stat_file=settings.stat_file,
        error_history=error_history,
        save_interval=0,
    )


@pytest.fixture
def work_queue():
    return asyncio.Queue(maxsize=100)


def make_group(src_dirs, rules=None, **kwargs) -> ScanGroupConfig:
    """Build a ScanGroupConfig from plain values."""
    return ScanGroupConfig(
        name=kwargs.pop("name", "test-group"),
        src_dirs=[str(d) for d in src_dirs],
        rules=[r if isinstance(r, RuleConfig) else RuleConfig(**r) for r in (rules or [])],
        **kwargs,
    )


@pytest.fixture
def group_factory():
    return make_group
