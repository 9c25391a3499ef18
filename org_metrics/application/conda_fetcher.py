"""Fetcher for Conda download totals from monthly Anaconda snapshots."""
import logging
from typing import Dict, Optional
from org_metrics.application.pipeline_runner import PipelineContext
from org_metrics.domain.downloads_interface import ISnapshotStore
from org_metrics.domain.legacy_packages import LegacyPackageMap
from org_metrics.domain.models import Month, Result


logger = logging.getLogger(__name__)


async def extend_snapshot_cache(store: ISnapshotStore, first: Month, last: Month) -> Optional[Month]:
    """Download every missing month from ``first`` through ``last``.

    Publication lags by an unknown amount, so the first month whose file is
    not available upstream ends the extension for this run; later months
    are not checked again.

    Args:
        store: Snapshot cache
        first: Earliest month to cache
        last: Latest month to consider, normally the current month

    Returns:
        The most recent fully available month, or None if none is
    """
    latest: Optional[Month] = None
    month = first

    while month <= last:
        if not store.is_cached(month):
            if not await store.is_available(month):
                logger.info(f"Conda snapshot {month.label} is not published yet, stopping")
                break
            await store.download(month)
        latest = month
        month = month.next()

    return latest


def merge_conda_totals(
    result: Result,
    totals: Dict[str, int],
    legacy_packages: LegacyPackageMap,
    monthly: bool = False,
) -> None:
    """Add per-package totals into the matching repository records.

    Legacy names are folded into their current package's record.

    Raises:
        UnknownRepositoryError: When a package maps to no repository record
    """
    for package_name, total in totals.items():
        repository = result.repository(legacy_packages.current_name(package_name))
        if monthly:
            repository.add_conda_downloads(monthly=total)
        else:
            repository.add_conda_downloads(total=total)


async def add_conda_data(result: Result, context: PipelineContext) -> Result:
    """Add lifetime and last-month Conda downloads to each repository."""
    if context.snapshots is None:
        raise ValueError("add_conda_data requires a snapshot store")

    store = context.snapshots
    first = Month(context.conda_start_year, 1)
    current = Month.from_date(context.clock().date())

    latest = await extend_snapshot_cache(store, first, current)
    if latest is None:
        logger.warning(f"No Conda snapshots available since {first.label}")
        return result

    package_names = context.legacy_packages.query_names(result.repositories)
    logger.info(
        f"Querying Conda downloads for {len(package_names)} packages "
        f"({first.label} to {latest.label})"
    )

    total_downloads = store.query_totals(package_names)
    last_month_downloads = store.query_totals(package_names, months=[latest])

    merge_conda_totals(result, total_downloads, context.legacy_packages)
    merge_conda_totals(result, last_month_downloads, context.legacy_packages, monthly=True)

    return result
