"""GitHub API client implementation with rate limiting and retry logic."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
import aiohttp
from gql import gql, Client
from gql.transport.aiohttp import AIOHTTPTransport
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from org_metrics.domain.github_interface import IGitHubClient
from org_metrics.domain.models import ContributorStatsResponse, RateLimit


logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://api.github.com/graphql"
REST_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


class RateLimitException(Exception):
    """Exception raised when rate limit is hit."""
    pass


def _parse_reset_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient(IGitHubClient):
    """GitHub GraphQL and REST client with rate limiting and retry mechanisms.

    Implements the IGitHubClient port, providing an anti-corruption layer
    between the domain and GitHub's API. GraphQL goes through gql's aiohttp
    transport; the contributor statistics endpoint only exists in REST.
    """

    RATE_LIMIT_QUERY = """
        query {
            rateLimit {
                limit
                remaining
                resetAt
            }
        }
    """

    def __init__(self, access_token: str, rate_limit_floor: int = 10):
        """Initialize GitHub client.

        Args:
            access_token: GitHub personal access token
            rate_limit_floor: Remaining quota below which requests wait for the reset
        """
        self._access_token = access_token
        self._rate_limit_floor = rate_limit_floor
        self._transport: Optional[AIOHTTPTransport] = None
        self._client: Optional[Client] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limit_remaining: int = 5000
        self._rate_limit_reset_at: Optional[datetime] = None
        self._rest_rate_limit_remaining: Optional[int] = None

    async def _init_client(self) -> None:
        """Initialize the GraphQL client (lazy initialization)."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._access_token}"}
            self._transport = AIOHTTPTransport(url=GRAPHQL_URL, headers=headers)
            self._client = Client(
                transport=self._transport,
                fetch_schema_from_transport=False
            )

    async def _init_session(self) -> aiohttp.ClientSession:
        """Initialize the REST session (lazy initialization)."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"Bearer {self._access_token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": API_VERSION,
                },
                timeout=aiohttp.ClientTimeout(total=60),
            )
        return self._session

    async def _check_rate_limit(self) -> None:
        """Check and handle rate limiting."""
        if self._rate_limit_remaining <= self._rate_limit_floor:
            if self._rate_limit_reset_at:
                wait_time = (self._rate_limit_reset_at - datetime.now(timezone.utc)).total_seconds()
                if wait_time > 0:
                    logger.warning(
                        f"Rate limit nearly exhausted. Waiting {wait_time:.0f} seconds "
                        f"until reset at {self._rate_limit_reset_at}"
                    )
                    await asyncio.sleep(wait_time + 1)  # Add 1 second buffer

    def _record_rate_limit(self, rate_limit: Optional[Dict[str, Any]]) -> None:
        if not rate_limit:
            return
        self._rate_limit_remaining = rate_limit.get("remaining", self._rate_limit_remaining)
        reset_at = _parse_reset_at(rate_limit.get("resetAt"))
        if reset_at:
            self._rate_limit_reset_at = reset_at

    @retry(
        retry=retry_if_exception_type(RateLimitException),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True
    )
    async def _execute_query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute GraphQL query with retry logic.

        Args:
            query: GraphQL query text
            variables: Query variables

        Returns:
            Query result dictionary

        Raises:
            RateLimitException: When rate limit is hit
        """
        await self._init_client()
        await self._check_rate_limit()

        try:
            async with self._client as session:
                result = await session.execute(
                    gql(query),
                    variable_values=variables or {}
                )
        except Exception as e:
            logger.error(f"Error executing GraphQL query: {e}")
            if "rate limit" in str(e).lower():
                raise RateLimitException(str(e))
            raise

        self._record_rate_limit(result.get("rateLimit"))
        return result

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._execute_query(query, variables)

    async def paginate_nodes(
        self,
        query: str,
        variables: Dict[str, Any],
        connection_path: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a connection.

        Follows ``pageInfo.endCursor`` until ``hasNextPage`` is false.

        Args:
            query: GraphQL query accepting a ``$cursor`` variable
            variables: Remaining query variables
            connection_path: Keys leading from the result to the connection

        Returns:
            Nodes from all pages, in order
        """
        nodes: List[Dict[str, Any]] = []
        cursor = None
        page = 0

        while True:
            result = await self._execute_query(query, {**variables, "cursor": cursor})
            connection: Any = result
            for key in connection_path:
                connection = (connection or {}).get(key)
            if connection is None:
                raise ValueError(
                    f"GraphQL response has no connection at {'.'.join(connection_path)}"
                )

            nodes.extend(node for node in connection.get("nodes") or [] if node)
            page += 1

            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")
            logger.debug(f"Fetched page {page} of {'.'.join(connection_path)} ({len(nodes)} nodes)")

        return nodes

    async def get_contributor_stats(self, owner: str, repo: str) -> ContributorStatsResponse:
        """Request ``/repos/{owner}/{repo}/stats/contributors``.

        Returns:
            The response status and, when ready, the number of contributors
        """
        session = await self._init_session()
        url = f"{REST_URL}/repos/{owner}/{repo}/stats/contributors"

        async with session.get(url) as response:
            remaining = response.headers.get("X-RateLimit-Remaining")
            if remaining is not None:
                # REST and GraphQL quotas are separate pools
                self._rest_rate_limit_remaining = int(remaining)
                if self._rest_rate_limit_remaining <= self._rate_limit_floor:
                    logger.warning(
                        f"REST rate limit nearly exhausted: {remaining} requests remaining"
                    )
            if response.status == 200:
                contributors = await response.json()
                return ContributorStatsResponse(
                    status_code=200,
                    contributors_count=len(contributors or []),
                )
            return ContributorStatsResponse(status_code=response.status)

    async def check_rate_limit(self) -> RateLimit:
        """Query the GraphQL rate limit without consuming quota."""
        result = await self._execute_query(self.RATE_LIMIT_QUERY)
        rate_limit = result["rateLimit"]
        return RateLimit(
            limit=rate_limit["limit"],
            remaining=rate_limit["remaining"],
            reset_at=_parse_reset_at(rate_limit.get("resetAt")),
        )

    async def close(self) -> None:
        """Close the GraphQL transport and REST session."""
        if self._transport:
            await self._transport.close()
            self._transport = None
            self._client = None
        if self._session:
            await self._session.close()
            self._session = None
