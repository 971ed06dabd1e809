import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from ..core.error_history import ErrorHistory
from ..dependencies import get_error_history, get_start_time, get_statistics_aggregator
from ..models import StatusReport
from ..services.status_report import build_status_report
from ..services.tracking.transfer_statistics import StatisticsAggregator

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=StatusReport)
async def get_stats(
    aggregator: StatisticsAggregator = Depends(get_statistics_aggregator),
    error_history: ErrorHistory = Depends(get_error_history),
    started_at: datetime = Depends(get_start_time),
) -> StatusReport:
    """Today's statistics, uptime, version and error history as JSON."""

    logging.debug("Stats endpoint called", extra={"operation": "api_stats"})
    return build_status_report(aggregator, error_history, started_at)
