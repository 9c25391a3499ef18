"""Fetchers for issue, pull request and discussion metrics."""
import logging
import statistics
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from org_metrics.application.pipeline_runner import PipelineContext
from org_metrics.application.repository_fetcher import query_organization_repositories
from org_metrics.domain.models import Result


logger = logging.getLogger(__name__)

ISSUE_AND_PR_COUNTS_QUERY = """
    query ($cursor: String, $organization: String!, $isFork: Boolean, $isArchived: Boolean) {
        organization(login: $organization) {
            repositories(privacy: PUBLIC, first: 50, isFork: $isFork, isArchived: $isArchived, after: $cursor) {
                pageInfo {
                    hasNextPage
                    endCursor
                }
                nodes {
                    name
                    isFork
                    isArchived
                    openIssues: issues(states: OPEN) {
                        totalCount
                    }
                    closedIssues: issues(states: CLOSED) {
                        totalCount
                    }
                    openPullRequests: pullRequests(states: OPEN) {
                        totalCount
                    }
                    mergedPullRequests: pullRequests(states: MERGED) {
                        totalCount
                    }
                }
            }
        }
    }
"""

DISCUSSION_COUNTS_QUERY = """
    query ($cursor: String, $organization: String!, $isFork: Boolean, $isArchived: Boolean) {
        organization(login: $organization) {
            repositories(privacy: PUBLIC, first: 100, isFork: $isFork, isArchived: $isArchived, after: $cursor) {
                pageInfo {
                    hasNextPage
                    endCursor
                }
                nodes {
                    name
                    isFork
                    isArchived
                    discussions {
                        totalCount
                    }
                }
            }
        }
    }
"""

REPOSITORY_ISSUES_QUERY = """
    query ($cursor: String, $owner: String!, $name: String!, $since: DateTime) {
        repository(owner: $owner, name: $name) {
            issues(first: 100, after: $cursor, filterBy: {since: $since}) {
                pageInfo {
                    hasNextPage
                    endCursor
                }
                nodes {
                    state
                    createdAt
                    closedAt
                    comments(first: 1) {
                        nodes {
                            createdAt
                        }
                    }
                }
            }
        }
    }
"""

ISSUE_METRIC_FIELDS = (
    "open_issues_median_age",
    "open_issues_average_age",
    "closed_issues_median_age",
    "closed_issues_average_age",
    "issues_response_median_age",
    "issues_response_average_age",
)


def _count(node: Dict[str, Any], key: str) -> int:
    return (node.get(key) or {}).get("totalCount", 0)


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _milliseconds_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


def summarize_durations(durations: Iterable[int]) -> Tuple[int, int]:
    """Median and mean of durations in milliseconds; ``(0, 0)`` when empty."""
    values = list(durations)
    if not values:
        return 0, 0
    return int(statistics.median(values)), int(round(statistics.mean(values)))


def compute_issue_metrics(
    issues: Iterable[Dict[str, Any]],
    now: datetime,
    since: Optional[datetime] = None,
) -> Dict[str, int]:
    """Age statistics for a repository's issues.

    Open issue age runs from creation to ``now``, closed issue age from
    creation to closing, response time from creation to the first comment.

    Args:
        issues: Issue nodes with ``state``, ``createdAt``, ``closedAt`` and
            the first comment
        now: Reference time for open issue ages
        since: Issues created before this time are ignored

    Returns:
        Values for every field in ISSUE_METRIC_FIELDS, 0 meaning no data
    """
    open_ages: List[int] = []
    closed_ages: List[int] = []
    response_times: List[int] = []

    for issue in issues:
        created = _parse_timestamp(issue["createdAt"])
        if since is not None and created < since:
            continue
        if issue.get("state") == "OPEN":
            open_ages.append(_milliseconds_between(created, now))
        elif issue.get("closedAt"):
            closed_ages.append(_milliseconds_between(created, _parse_timestamp(issue["closedAt"])))

        comments = (issue.get("comments") or {}).get("nodes") or []
        if comments and comments[0]:
            response_times.append(_milliseconds_between(created, _parse_timestamp(comments[0]["createdAt"])))

    open_median, open_average = summarize_durations(open_ages)
    closed_median, closed_average = summarize_durations(closed_ages)
    response_median, response_average = summarize_durations(response_times)

    return {
        "open_issues_median_age": open_median,
        "open_issues_average_age": open_average,
        "closed_issues_median_age": closed_median,
        "closed_issues_average_age": closed_average,
        "issues_response_median_age": response_median,
        "issues_response_average_age": response_average,
    }


async def add_issue_and_pr_data(result: Result, context: PipelineContext) -> Result:
    """Add open/closed issue and open/merged pull request counts."""
    nodes = await query_organization_repositories(context.github, context.config, ISSUE_AND_PR_COUNTS_QUERY)

    for node in nodes:
        repository = result.repositories.get(node["name"])
        if repository is None:
            continue
        repository.open_issues_count = _count(node, "openIssues")
        repository.closed_issues_count = _count(node, "closedIssues")
        repository.total_issues_count = repository.open_issues_count + repository.closed_issues_count
        repository.open_pull_requests_count = _count(node, "openPullRequests")
        repository.merged_pull_requests_count = _count(node, "mergedPullRequests")

    return result


async def add_discussion_data(result: Result, context: PipelineContext) -> Result:
    """Add discussion counts."""
    nodes = await query_organization_repositories(context.github, context.config, DISCUSSION_COUNTS_QUERY)

    for node in nodes:
        repository = result.repositories.get(node["name"])
        if repository is not None:
            repository.discussions_count = _count(node, "discussions")

    return result


async def add_issue_metrics_data(result: Result, context: PipelineContext) -> Result:
    """Add issue age statistics for issues created on or after the configured date.

    GitHub's ``since`` filter matches issues updated since the date, which
    is a superset; older issues are dropped before the statistics.
    """
    now = context.clock()

    for name, repository in result.repositories.items():
        owner = repository.repo_name_with_owner.split("/", 1)[0]
        issues = await context.github.paginate_nodes(
            REPOSITORY_ISSUES_QUERY,
            {"owner": owner, "name": name, "since": context.config.since_iso},
            ("repository", "issues"),
        )
        metrics = compute_issue_metrics(issues, now, context.config.since)
        for field_name, value in metrics.items():
            setattr(repository, field_name, value)
        logger.debug(f"Computed issue metrics for {name} from {len(issues)} issues")

    return result
