"""Download statistics interfaces (ports) for package registries."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional
from org_metrics.domain.models import Month


class SnapshotDownloadError(Exception):
    """Raised when a monthly snapshot file cannot be fetched into the cache."""
    pass


class IDownloadsClient(ABC):
    """Abstract interface for the per-project downloads tracking service."""

    @abstractmethod
    async def fetch_project(self, project_name: str) -> Optional[Dict[str, Any]]:
        """Fetch download statistics for one project.

        Returns:
            Decoded response body, or None when the service has no usable
            data for the project
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass


class ISnapshotStore(ABC):
    """Abstract interface for the on-disk cache of monthly Conda snapshots."""

    @abstractmethod
    def is_cached(self, month: Month) -> bool:
        pass

    @abstractmethod
    async def is_available(self, month: Month) -> bool:
        """Probe whether the upstream file for ``month`` has been published."""
        pass

    @abstractmethod
    async def download(self, month: Month) -> None:
        """Download the snapshot for ``month`` into the cache.

        Raises:
            SnapshotDownloadError: When the file could not be stored; the
                cache is left without a partial file
        """
        pass

    @abstractmethod
    def query_totals(
        self,
        package_names: Iterable[str],
        months: Optional[Iterable[Month]] = None,
    ) -> Dict[str, int]:
        """Sum download counts per package over cached snapshot files.

        Args:
            package_names: Package names to aggregate
            months: Restrict the scan to these months; all cached months when None

        Returns:
            Mapping of package name to summed downloads (absent when zero rows)
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
