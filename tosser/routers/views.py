from datetime import datetime, timedelta
from pathlib import Path

from fastapi import APIRouter, Request, Depends
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from tosser.core.error_history import ErrorHistory
from tosser.dependencies import get_error_history, get_start_time, get_statistics_aggregator
from tosser.services.status_report import build_status_report
from tosser.services.tracking.transfer_statistics import StatisticsAggregator

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


@router.get("/", response_class=HTMLResponse)
async def status_page(
    request: Request,
    aggregator: StatisticsAggregator = Depends(get_statistics_aggregator),
    error_history: ErrorHistory = Depends(get_error_history),
    started_at: datetime = Depends(get_start_time),
):
    """
    Status page: today's transfers per destination directory and recent errors.
    """
    report = build_status_report(aggregator, error_history, started_at)

    return templates.TemplateResponse(
        request,
        "stat.html",
        {
            "report": report,
            "uptime": str(timedelta(seconds=report.uptime_seconds)),
            "page_title": f"File Tosser - {report.stat_date}",
        },
    )
