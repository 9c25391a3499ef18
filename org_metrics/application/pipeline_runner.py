"""Pipeline runner applying the fetchers to one organization's Result."""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence
from org_metrics.config import OrganizationConfig
from org_metrics.domain.downloads_interface import IDownloadsClient, ISnapshotStore
from org_metrics.domain.github_interface import IGitHubClient
from org_metrics.domain.legacy_packages import LegacyPackageMap
from org_metrics.domain.models import Result


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PipelineContext:
    """Collaborators and settings shared by every fetcher of one run."""
    config: OrganizationConfig
    github: IGitHubClient
    downloads: Optional[IDownloadsClient] = None
    snapshots: Optional[ISnapshotStore] = None
    legacy_packages: LegacyPackageMap = field(default_factory=LegacyPackageMap)
    conda_start_year: int = 2018
    contributor_retry_delay: float = 60.0
    contributor_max_retries: Optional[int] = 10
    sleep: Optional[Callable[[float], Awaitable[None]]] = None
    clock: Callable[[], datetime] = _utc_now


Fetcher = Callable[[Result, PipelineContext], Awaitable[Result]]


class PipelineRunner:
    """Application service running fetchers strictly one after another.

    Each fetcher gets its own copy of the result so far and returns the
    augmented Result. Any exception aborts the run; there is no partial
    output and no resume.
    """

    def __init__(self, context: PipelineContext, fetchers: Sequence[Fetcher]):
        """Initialize pipeline runner.

        Args:
            context: Shared clients and organization settings
            fetchers: Fetchers in the order they must run
        """
        self._context = context
        self._fetchers: List[Fetcher] = list(fetchers)

    async def run(self) -> Result:
        """Run every fetcher in order.

        Returns:
            The Result after the last fetcher
        """
        organization = self._context.config.organization
        start_time = time.time()
        result = Result()

        logger.info(f"Starting pipeline for {organization} with {len(self._fetchers)} fetchers")

        for fetcher in self._fetchers:
            name = getattr(fetcher, "__name__", repr(fetcher))
            logger.info(f"Running fetcher {name}")
            try:
                result = await fetcher(result.copy(), self._context)
            except Exception as e:
                logger.error(f"Fetcher {name} failed for {organization}: {e}")
                raise
            logger.info(f"Finished {name}")

            rate_limit = await self._context.github.check_rate_limit()
            logger.info(
                f"Rate limit: {rate_limit.remaining}/{rate_limit.limit} "
                f"remaining until {rate_limit.reset_at}"
            )

        duration = time.time() - start_time
        logger.info(
            f"Pipeline for {organization} completed: {len(result.repositories)} "
            f"repositories in {duration:.2f} seconds"
        )
        return result
