"""Polling of GitHub's asynchronously computed contributor statistics."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Optional
from org_metrics.domain.models import ContributorStatsResponse, ContributorStatus


logger = logging.getLogger(__name__)

StatsFetcher = Callable[[str], Awaitable[ContributorStatsResponse]]


@dataclass
class ContributorPollState:
    """Per-repository progress through PENDING -> WAITING -> DONE/FAILED."""
    status: ContributorStatus = ContributorStatus.PENDING
    contributors_count: int = 0
    attempts: int = 0
    last_status_code: Optional[int] = None


class ContributorStatsPoller:
    """Drives contributor statistics requests until every repository settles.

    A 200 settles a repository as DONE, a 202 parks it as WAITING and any
    other status marks it FAILED with a count of 0. WAITING repositories
    are re-requested together after ``retry_delay`` seconds. After
    ``max_retries`` such rounds, anything still WAITING becomes FAILED;
    ``max_retries=None`` keeps polling until GitHub answers.
    """

    def __init__(
        self,
        fetch_stats: StatsFetcher,
        retry_delay: float = 60.0,
        max_retries: Optional[int] = 10,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize poller.

        Args:
            fetch_stats: Coroutine requesting stats for a repository name
            retry_delay: Seconds to wait between rounds
            max_retries: Retry rounds before giving up, None for no limit
            sleep: Awaitable sleep, ``asyncio.sleep`` by default
        """
        self._fetch_stats = fetch_stats
        self._retry_delay = retry_delay
        self._max_retries = max_retries
        self._sleep = sleep or asyncio.sleep

    async def _request(self, name: str, state: ContributorPollState) -> None:
        response = await self._fetch_stats(name)
        state.attempts += 1
        state.last_status_code = response.status_code

        if response.is_ready:
            state.status = ContributorStatus.DONE
            state.contributors_count = response.contributors_count
        elif response.is_computing:
            state.status = ContributorStatus.WAITING
            logger.info(f"Contributors data for {name} is not ready yet")
        else:
            state.status = ContributorStatus.FAILED
            state.contributors_count = 0
            logger.error(f"Error fetching contributors data for {name}: {response.status_code}")

    async def poll(self, names: Iterable[str]) -> Dict[str, ContributorPollState]:
        """Request stats for every repository and wait out the 202 responses.

        Args:
            names: Repository names, requested one at a time in this order

        Returns:
            Final state per repository name
        """
        states: Dict[str, ContributorPollState] = {name: ContributorPollState() for name in names}

        for name, state in states.items():
            await self._request(name, state)

        retries = 0
        waiting = [name for name, state in states.items() if state.status is ContributorStatus.WAITING]
        while waiting:
            if self._max_retries is not None and retries >= self._max_retries:
                for name in waiting:
                    states[name].status = ContributorStatus.FAILED
                    states[name].contributors_count = 0
                logger.warning(
                    f"Giving up on contributors data for {len(waiting)} repositories "
                    f"after {retries} retries: {', '.join(waiting)}"
                )
                break

            logger.info(f"Waiting for contributors data from {len(waiting)} repositories to be ready")
            await self._sleep(self._retry_delay)
            retries += 1

            for name in waiting:
                await self._request(name, states[name])
            waiting = [name for name in waiting if states[name].status is ContributorStatus.WAITING]

        return states
