"""Fetcher for PyPI download numbers reported by pepy.tech."""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Mapping
from dateutil.relativedelta import relativedelta
from org_metrics.application.pipeline_runner import PipelineContext
from org_metrics.domain.models import Result


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadNumbers:
    """Totals derived from a per-day, per-version download series."""
    total: int
    daily: int
    weekly: int
    monthly: int


def collapse_downloads(downloads: Mapping[str, Mapping[str, int]]) -> Dict[date, int]:
    """Sum the per-version counts of each day."""
    return {
        date.fromisoformat(day): sum(versions.values())
        for day, versions in (downloads or {}).items()
    }


def process_download_numbers(project: Mapping[str, Any], today: date) -> DownloadNumbers:
    """Derive daily, weekly and monthly totals for a pepy project response.

    The most recent day the service reports is yesterday. Weekly and monthly
    windows hold the days after ``today - 7 days`` and ``today - 1 month``
    (calendar month) up to and including yesterday.

    Args:
        project: pepy response with ``total_downloads`` and ``downloads``
        today: Reference date

    Returns:
        Download totals for the project
    """
    collapsed = collapse_downloads(project.get("downloads") or {})
    yesterday = today - timedelta(days=1)
    week_start = today - timedelta(days=7)
    month_start = today - relativedelta(months=1)

    def window_sum(start: date) -> int:
        return sum(count for day, count in collapsed.items() if start < day <= yesterday)

    return DownloadNumbers(
        total=int(project.get("total_downloads") or 0),
        daily=collapsed.get(yesterday, 0),
        weekly=window_sum(week_start),
        monthly=window_sum(month_start),
    )


async def add_downloads_pepy(result: Result, context: PipelineContext) -> Result:
    """Add pepy download counts to every repository with a matching project.

    A project the service cannot return is logged and left without
    download fields; the remaining repositories are still processed.
    """
    if context.downloads is None:
        raise ValueError("add_downloads_pepy requires a downloads client")

    today = context.clock().date()
    found = 0

    for name, repository in result.repositories.items():
        project = await context.downloads.fetch_project(name)
        if project is None:
            continue

        numbers = process_download_numbers(project, today)
        repository.total_download_count = numbers.total
        repository.monthly_download_count = numbers.monthly
        repository.weekly_download_count = numbers.weekly
        repository.daily_download_count = numbers.daily
        found += 1

    logger.info(f"Download data found for {found}/{len(result.repositories)} repositories")
    return result
