"""pepy.tech downloads client for Python package statistics."""
import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote
import aiohttp
from org_metrics.domain.downloads_interface import IDownloadsClient


logger = logging.getLogger(__name__)

PEPY_PROJECTS_URL = "https://api.pepy.tech/api/v2/projects"


class PePyClient(IDownloadsClient):
    """Client for the pepy.tech v2 projects API.

    Response body: ``{"total_downloads": N, "downloads": {date: {version: count}}}``.
    Failures are logged and reported as None so one project never stops a batch.
    """

    def __init__(self, api_key: str, base_url: str = PEPY_PROJECTS_URL, timeout: float = 30):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _init_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"X-Api-Key": self._api_key, "Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def fetch_project(self, project_name: str) -> Optional[Dict[str, Any]]:
        """Fetch download statistics for one project.

        Args:
            project_name: Package name on PyPI

        Returns:
            Decoded JSON body, or None on a non-success status or network error
        """
        session = await self._init_session()
        url = f"{self._base_url}/{quote(project_name, safe='')}"

        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    logger.error(
                        f"Error fetching download data for project {project_name}: "
                        f"{response.status} {response.reason}"
                    )
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching download data for project {project_name}: {e}")
            return None

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
