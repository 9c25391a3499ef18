"""GitHub API interface (port) for fetching organization data.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from org_metrics.domain.models import ContributorStatsResponse, RateLimit


class IGitHubClient(ABC):
    """Abstract interface for GitHub API operations."""

    @abstractmethod
    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a single GraphQL query.

        Args:
            query: GraphQL query text
            variables: Query variables

        Returns:
            The ``data`` object of the response
        """
        pass

    @abstractmethod
    async def paginate_nodes(
        self,
        query: str,
        variables: Dict[str, Any],
        connection_path: Sequence[str],
    ) -> List[Dict[str, Any]]:
        """Collect the nodes of a cursor-paginated connection across all pages.

        The query must accept a ``$cursor`` variable and select ``pageInfo``
        and ``nodes`` on the connection found at ``connection_path``.

        Args:
            query: GraphQL query text
            variables: Query variables other than the cursor
            connection_path: Keys leading from ``data`` to the connection

        Returns:
            All non-null nodes, in page order
        """
        pass

    @abstractmethod
    async def get_contributor_stats(self, owner: str, repo: str) -> ContributorStatsResponse:
        """Request contributor statistics for one repository.

        GitHub computes these asynchronously: a 202 means "try again later".
        """
        pass

    @abstractmethod
    async def check_rate_limit(self) -> RateLimit:
        """Return the remaining API quota."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
