"""Disk cache and query layer for Anaconda monthly package-download snapshots.

Snapshots are parquet files published per calendar month at
``{base_url}/{year}/{year}-{month}.parquet``. Each row carries a ``pkg_name``
and a ``counts`` column; totals are sums of ``counts``.
"""
import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
import aiohttp
import pandas as pd
from org_metrics.domain.downloads_interface import ISnapshotStore, SnapshotDownloadError
from org_metrics.domain.models import Month


logger = logging.getLogger(__name__)

ANACONDA_MONTHLY_URL = "https://anaconda-package-data.s3.amazonaws.com/conda/monthly"

_SNAPSHOT_NAME = re.compile(r"^(\d{4})-(\d{2})\.parquet$")
_CHUNK_SIZE = 1024 * 1024


class CondaSnapshotStore(ISnapshotStore):
    """Append-only cache of monthly snapshot files in a local directory.

    Files already present are never downloaded again. Downloads land in a
    ``.part`` file first and are renamed into place once complete, so the
    cache never holds a truncated month. One cache directory must not be
    shared by concurrent runs.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        base_url: str = ANACONDA_MONTHLY_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._cache_dir = Path(cache_dir).expanduser()
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def url_for(self, month: Month) -> str:
        return f"{self._base_url}/{month.year}/{month.label}.parquet"

    def path_for(self, month: Month) -> Path:
        return self._cache_dir / f"{month.label}.parquet"

    def is_cached(self, month: Month) -> bool:
        return self.path_for(month).exists()

    def cached_months(self) -> List[Month]:
        """List cached months in chronological order."""
        if not self._cache_dir.exists():
            return []
        months = []
        for path in self._cache_dir.iterdir():
            match = _SNAPSHOT_NAME.match(path.name)
            if match:
                months.append(Month(int(match.group(1)), int(match.group(2))))
        return sorted(months)

    async def _init_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_read=300)
            )
        return self._session

    async def is_available(self, month: Month) -> bool:
        """HEAD the upstream file; any 2xx status means it is published."""
        session = await self._init_session()
        url = self.url_for(month)
        async with session.head(url) as response:
            available = 200 <= response.status < 300
        logger.debug(f"Snapshot {month.label} availability: {available} ({url})")
        return available

    async def download(self, month: Month) -> None:
        """Stream the snapshot for ``month`` into the cache directory.

        Raises:
            SnapshotDownloadError: On a non-200 status or a transfer error
        """
        session = await self._init_session()
        url = self.url_for(month)
        target = self.path_for(month)
        partial = target.with_name(target.name + ".part")
        self._cache_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Downloading Conda snapshot {month.label} from {url}")
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise SnapshotDownloadError(f"Failed to get '{url}' ({response.status})")
                with open(partial, "wb") as fh:
                    async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
                        fh.write(chunk)
            os.replace(partial, target)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise SnapshotDownloadError(f"Failed to download '{url}': {e}") from e
        finally:
            if partial.exists():
                partial.unlink()

        logger.info(f"Cached Conda snapshot {month.label} at {target}")

    def query_totals(
        self,
        package_names: Iterable[str],
        months: Optional[Iterable[Month]] = None,
    ) -> Dict[str, int]:
        """Sum ``counts`` per ``pkg_name`` across cached snapshot files.

        Args:
            package_names: Package names to aggregate
            months: Months to scan; every cached month when None

        Returns:
            Mapping of package name to total downloads
        """
        names = list(dict.fromkeys(package_names))
        if not names:
            return {}

        selected = self.cached_months() if months is None else list(months)
        frames = []
        for month in selected:
            path = self.path_for(month)
            frame = pd.read_parquet(
                path,
                columns=["pkg_name", "counts"],
                filters=[("pkg_name", "in", names)],
            )
            if not frame.empty:
                frame["pkg_name"] = frame["pkg_name"].astype(str)
                frames.append(frame)

        if not frames:
            return {}

        combined = pd.concat(frames, ignore_index=True)
        totals = combined.groupby("pkg_name")["counts"].sum()
        return {str(name): int(total) for name, total in totals.items()}

    async def close(self) -> None:
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None
