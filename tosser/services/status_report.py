from datetime import datetime
from typing import Optional

from tosser import BUILD_TIME, __version__
from tosser.core.error_history import ErrorHistory
from tosser.models import StatusReport
from tosser.services.tracking.transfer_statistics import StatisticsAggregator, day_key


def build_status_report(
    aggregator: StatisticsAggregator,
    error_history: ErrorHistory,
    started_at: datetime,
    now: Optional[datetime] = None,
) -> StatusReport:
    """Today's statistics, uptime, version and recent errors for the status page."""
    now = (now or datetime.now()).replace(microsecond=0)
    return StatusReport(
        stat_date=day_key(now),
        version=__version__,
        build_time=BUILD_TIME,
        started_at=started_at,
        uptime_seconds=int((now - started_at).total_seconds()),
        dirs=aggregator.day_snapshot(day_key(now)),
        error_history=error_history.items(),
    )
