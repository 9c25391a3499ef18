"""Shared fakes for the GitHub, downloads and snapshot ports."""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from org_metrics.application.pipeline_runner import PipelineContext
from org_metrics.config import OrganizationConfig
from org_metrics.domain.downloads_interface import IDownloadsClient, ISnapshotStore
from org_metrics.domain.github_interface import IGitHubClient
from org_metrics.domain.legacy_packages import LegacyPackageMap
from org_metrics.domain.models import ContributorStatsResponse, Month, RateLimit


FIXED_NOW = datetime(2025, 4, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_repo_node(name, owner="brainglobe", is_fork=False, is_archived=False, **extra):
    node = {
        "name": name,
        "nameWithOwner": f"{owner}/{name}",
        "isFork": is_fork,
        "isArchived": is_archived,
        "forkCount": 3,
        "stargazerCount": 42,
        "hasIssuesEnabled": True,
        "hasProjectsEnabled": False,
        "hasDiscussionsEnabled": False,
        "projects": {"totalCount": 0},
        "projectsV2": {"totalCount": 1},
        "licenseInfo": {"name": "BSD 3-Clause"},
        "watchers": {"totalCount": 7},
        "collaborators": {"totalCount": 2},
        "repositoryTopics": {"nodes": [{"topic": {"name": "neuroscience"}}]},
    }
    node.update(extra)
    return node


class FakeGitHubClient(IGitHubClient):
    """In-memory GitHub client.

    Organization listings honor the ``isFork``/``isArchived`` variables the way
    the GraphQL API does: ``False`` filters, ``None`` does not.
    """

    def __init__(self, repositories=None, contributor_responses=None, issues=None, organization=None):
        self.repositories: List[dict] = list(repositories or [])
        self.contributor_responses: Dict[str, List[ContributorStatsResponse]] = {
            name: list(responses) for name, responses in (contributor_responses or {}).items()
        }
        self.issues: Dict[str, List[dict]] = issues or {}
        self.organization = organization
        self.contributor_calls: List[str] = []
        self.contributor_owners: List[str] = []
        self.paginate_calls: List[dict] = []
        self.rate_limit_checks = 0
        self.closed = False

    async def execute(self, query, variables=None):
        return {"organization": self.organization}

    async def paginate_nodes(self, query, variables, connection_path):
        self.paginate_calls.append({"variables": dict(variables), "path": tuple(connection_path)})
        if tuple(connection_path) == ("repository", "issues"):
            return list(self.issues.get(variables["name"], []))

        nodes = []
        for node in self.repositories:
            if variables.get("isFork") is False and node.get("isFork"):
                continue
            if variables.get("isArchived") is False and node.get("isArchived"):
                continue
            nodes.append(node)
        return nodes

    async def get_contributor_stats(self, owner, repo):
        self.contributor_calls.append(repo)
        self.contributor_owners.append(owner)
        responses = self.contributor_responses.get(repo)
        if not responses:
            return ContributorStatsResponse(status_code=200, contributors_count=1)
        if len(responses) > 1:
            return responses.pop(0)
        return responses[0]

    async def check_rate_limit(self):
        self.rate_limit_checks += 1
        return RateLimit(limit=5000, remaining=4990 - self.rate_limit_checks)

    async def close(self):
        self.closed = True


class FakeDownloadsClient(IDownloadsClient):
    def __init__(self, projects: Optional[Dict[str, dict]] = None):
        self.projects = projects or {}
        self.requested: List[str] = []

    async def fetch_project(self, project_name):
        self.requested.append(project_name)
        return self.projects.get(project_name)

    async def close(self):
        pass


class FakeSnapshotStore(ISnapshotStore):
    """Snapshot store backed by a dict of month -> {package: count}."""

    def __init__(self, published: Dict[Month, Dict[str, int]], cached=()):
        self.published = published
        self.cached = set(cached)
        self.checked: List[Month] = []
        self.downloaded: List[Month] = []
        self.queries: List[Optional[List[Month]]] = []

    def is_cached(self, month):
        return month in self.cached

    async def is_available(self, month):
        self.checked.append(month)
        return month in self.published

    async def download(self, month):
        self.downloaded.append(month)
        self.cached.add(month)

    def query_totals(self, package_names, months=None):
        names = set(package_names)
        selected = sorted(self.cached) if months is None else list(months)
        self.queries.append(None if months is None else selected)
        totals: Dict[str, int] = {}
        for month in selected:
            for name, count in self.published.get(month, {}).items():
                if name in names:
                    totals[name] = totals.get(name, 0) + count
        return totals

    async def close(self):
        pass


class StubContent:
    """Streamed response body; raises ``error`` after the given chunks."""

    def __init__(self, chunks=(), error=None):
        self._chunks = list(chunks)
        self._error = error

    async def iter_chunked(self, size):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


class StubResponse:
    def __init__(self, status, body=None, headers=None, reason="OK", chunks=(), error=None):
        self.status = status
        self.reason = reason
        self.headers = headers or {}
        self.content = StubContent(chunks, error)
        self._body = body

    async def json(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def make_session(response=None, head=None):
    session = MagicMock()
    session.get.return_value = response
    session.head.return_value = head
    session.close = AsyncMock()
    return session


async def no_sleep(seconds):
    return None


@pytest.fixture
def org_config():
    return OrganizationConfig(
        organization="brainglobe",
        since=datetime(2024, 4, 15, tzinfo=timezone.utc),
    )


@pytest.fixture
def make_context(org_config):
    def _make(github=None, downloads=None, snapshots=None, legacy=None, **overrides):
        overrides.setdefault("config", org_config)
        overrides.setdefault("sleep", no_sleep)
        overrides.setdefault("clock", lambda: FIXED_NOW)
        return PipelineContext(
            github=github or FakeGitHubClient(),
            downloads=downloads,
            snapshots=snapshots,
            legacy_packages=legacy or LegacyPackageMap(),
            **overrides,
        )
    return _make
