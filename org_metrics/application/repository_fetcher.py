"""Fetchers listing an organization's repositories and their popularity metrics."""
import logging
from typing import Any, Dict, List, Optional
from org_metrics.application.contributor_poller import ContributorStatsPoller
from org_metrics.application.pipeline_runner import PipelineContext
from org_metrics.config import OrganizationConfig
from org_metrics.domain.filters import should_include_repository
from org_metrics.domain.github_interface import IGitHubClient
from org_metrics.domain.models import NO_LICENSE, RepositoryDescriptor, RepositoryResult, Result


logger = logging.getLogger(__name__)

REPOSITORIES_PATH = ("organization", "repositories")

REPOSITORY_LIST_QUERY = """
    query ($cursor: String, $organization: String!, $isFork: Boolean, $isArchived: Boolean) {
        organization(login: $organization) {
            repositories(privacy: PUBLIC, first: 100, isFork: $isFork, isArchived: $isArchived, after: $cursor) {
                pageInfo {
                    hasNextPage
                    endCursor
                }
                nodes {
                    name
                    nameWithOwner
                    isFork
                    isArchived
                }
            }
        }
    }
"""

REPOSITORY_METRICS_QUERY = """
    query ($cursor: String, $organization: String!, $isFork: Boolean, $isArchived: Boolean) {
        organization(login: $organization) {
            repositories(privacy: PUBLIC, first: 100, isFork: $isFork, isArchived: $isArchived, after: $cursor) {
                pageInfo {
                    hasNextPage
                    endCursor
                }
                nodes {
                    name
                    nameWithOwner
                    forkCount
                    stargazerCount
                    isFork
                    isArchived
                    hasIssuesEnabled
                    hasProjectsEnabled
                    hasDiscussionsEnabled
                    projects {
                        totalCount
                    }
                    projectsV2 {
                        totalCount
                    }
                    licenseInfo {
                        name
                    }
                    watchers {
                        totalCount
                    }
                    collaborators {
                        totalCount
                    }
                    repositoryTopics(first: 20) {
                        nodes {
                            topic {
                                name
                            }
                        }
                    }
                }
            }
        }
    }
"""


def listing_variables(config: OrganizationConfig) -> Dict[str, Any]:
    """Variables for an organization repository listing.

    Forks and archived repositories are filtered server-side unless the
    configuration includes them; ``None`` lifts the filter.
    """
    return {
        "organization": config.organization,
        "isFork": None if config.include_forks else False,
        "isArchived": None if config.include_archived else False,
    }


async def query_organization_repositories(
    github: IGitHubClient,
    config: OrganizationConfig,
    query: str = REPOSITORY_LIST_QUERY,
) -> List[Dict[str, Any]]:
    """Paginate an organization repository query and apply the inclusion filter.

    Args:
        github: GitHub client
        config: Organization settings with the inclusion flags
        query: Listing query; must select ``isFork`` and ``isArchived``

    Returns:
        Raw repository nodes in discovery order
    """
    nodes = await github.paginate_nodes(query, listing_variables(config), REPOSITORIES_PATH)
    included = [
        node for node in nodes
        if should_include_repository(
            node.get("isArchived"),
            node.get("isFork"),
            config.include_archived,
            config.include_forks,
        )
    ]
    logger.info(
        f"Listed {len(included)} repositories for {config.organization} "
        f"({len(nodes) - len(included)} filtered out)"
    )
    return included


async def list_organization_repositories(
    github: IGitHubClient,
    config: OrganizationConfig,
) -> List[RepositoryDescriptor]:
    """List the public repositories of an organization.

    Transport and authentication errors propagate to the caller.
    """
    nodes = await query_organization_repositories(github, config)
    return [describe_repository(node, config.organization) for node in nodes]


def describe_repository(node: Dict[str, Any], organization: str) -> RepositoryDescriptor:
    """Build the listing entry for a repository node."""
    return RepositoryDescriptor(
        name=node["name"],
        name_with_owner=node.get("nameWithOwner") or f"{organization}/{node['name']}",
        is_fork=bool(node.get("isFork")),
        is_archived=bool(node.get("isArchived")),
    )


def _total_count(node: Dict[str, Any], key: str) -> Optional[int]:
    connection = node.get(key)
    if connection is None:
        return None
    return connection.get("totalCount", 0)


def build_repository_result(node: Dict[str, Any], contributors_count: int = 0) -> RepositoryResult:
    """Map a metrics query node onto a new RepositoryResult."""
    topics = [
        topic_node["topic"]["name"]
        for topic_node in (node.get("repositoryTopics") or {}).get("nodes") or []
        if topic_node and topic_node.get("topic")
    ]
    license_info = node.get("licenseInfo") or {}

    return RepositoryResult(
        repository_name=node["name"],
        repo_name_with_owner=node["nameWithOwner"],
        license_name=license_info.get("name") or NO_LICENSE,
        topics=topics,
        forks_count=node.get("forkCount") or 0,
        watchers_count=_total_count(node, "watchers") or 0,
        stars_count=node.get("stargazerCount") or 0,
        contributors_count=contributors_count,
        issues_enabled=node.get("hasIssuesEnabled"),
        projects_enabled=node.get("hasProjectsEnabled"),
        discussions_enabled=node.get("hasDiscussionsEnabled"),
        collaborators_count=_total_count(node, "collaborators") or 0,
        projects_count=_total_count(node, "projects"),
        projects_v2_count=_total_count(node, "projectsV2"),
    )


async def add_repositories_to_result(result: Result, context: PipelineContext) -> Result:
    """Create one RepositoryResult per listed repository.

    Batch fields come from a single paginated query; contributor counts are
    polled per repository and default to 0 when GitHub never delivers them.
    """
    config = context.config
    nodes = await query_organization_repositories(context.github, config, REPOSITORY_METRICS_QUERY)

    descriptors = {
        descriptor.name: descriptor
        for descriptor in (describe_repository(node, config.organization) for node in nodes)
    }

    async def fetch_stats(name: str):
        return await context.github.get_contributor_stats(descriptors[name].owner, name)

    poller = ContributorStatsPoller(
        fetch_stats,
        retry_delay=context.contributor_retry_delay,
        max_retries=context.contributor_max_retries,
        sleep=context.sleep,
    )
    states = await poller.poll(descriptors)

    repositories: Dict[str, RepositoryResult] = {}
    for node in nodes:
        state = states.get(node["name"])
        contributors = state.contributors_count if state else 0
        repositories[node["name"]] = build_repository_result(node, contributors)

    result.repositories = repositories
    return result
