"""Tests for the organization lister and repository metrics fetcher."""
import pytest
from conftest import FakeGitHubClient, make_repo_node
from org_metrics.application.repository_fetcher import (
    add_repositories_to_result,
    list_organization_repositories,
    listing_variables,
)
from org_metrics.config import OrganizationConfig
from org_metrics.domain.models import ContributorStatsResponse, Result


def test_listing_variables_follow_inclusion_flags():
    strict = listing_variables(OrganizationConfig(organization="org"))
    relaxed = listing_variables(OrganizationConfig(organization="org", include_forks=True, include_archived=True))

    assert strict == {"organization": "org", "isFork": False, "isArchived": False}
    assert relaxed == {"organization": "org", "isFork": None, "isArchived": None}


@pytest.mark.asyncio
async def test_archived_repository_is_excluded_by_default(make_context):
    """Three repositories, one archived: only two records are produced."""
    github = FakeGitHubClient(repositories=[
        make_repo_node("brainreg"),
        make_repo_node("old-tool", is_archived=True),
        make_repo_node("cellfinder"),
    ])
    context = make_context(github=github)

    result = await add_repositories_to_result(Result(), context)

    assert list(result.repositories) == ["brainreg", "cellfinder"]
    assert github.contributor_calls == ["brainreg", "cellfinder"]


@pytest.mark.asyncio
async def test_contributor_stats_use_owner_from_listing(make_context):
    """A transferred repository is polled under the owner GitHub reports."""
    github = FakeGitHubClient(repositories=[
        make_repo_node("brainreg"),
        make_repo_node("moved", owner="neuroinformatics-unit"),
    ])

    result = await add_repositories_to_result(Result(), make_context(github=github))

    assert github.contributor_calls == ["brainreg", "moved"]
    assert github.contributor_owners == ["brainglobe", "neuroinformatics-unit"]
    assert result.repositories["moved"].repo_name_with_owner == "neuroinformatics-unit/moved"


@pytest.mark.asyncio
async def test_lister_returns_descriptors_in_discovery_order(org_config):
    github = FakeGitHubClient(repositories=[
        make_repo_node("b"),
        make_repo_node("fork", is_fork=True),
        make_repo_node("a"),
    ])

    repos = await list_organization_repositories(github, org_config)

    assert [repo.name for repo in repos] == ["b", "a"]
    assert repos[0].name_with_owner == "brainglobe/b"


@pytest.mark.asyncio
async def test_client_side_filter_keeps_archived_non_fork_when_server_returns_it(org_config):
    """The published disjunction only drops repositories that are both archived and forks."""

    class UnfilteredGitHubClient(FakeGitHubClient):
        async def paginate_nodes(self, query, variables, connection_path):
            return list(self.repositories)

    github = UnfilteredGitHubClient(repositories=[
        make_repo_node("archived", is_archived=True),
        make_repo_node("archived-fork", is_archived=True, is_fork=True),
    ])

    repos = await list_organization_repositories(github, org_config)

    assert [repo.name for repo in repos] == ["archived"]


@pytest.mark.asyncio
async def test_include_flags_lift_server_side_filter(make_context):
    github = FakeGitHubClient(repositories=[
        make_repo_node("main"),
        make_repo_node("fork", is_fork=True),
        make_repo_node("archived", is_archived=True),
    ])
    config = OrganizationConfig(organization="brainglobe", include_forks=True, include_archived=True)
    context = make_context(github=github, config=config)

    result = await add_repositories_to_result(Result(), context)

    assert list(result.repositories) == ["main", "fork", "archived"]


@pytest.mark.asyncio
async def test_repository_record_fields(make_context):
    node = make_repo_node("brainreg", licenseInfo=None)
    github = FakeGitHubClient(
        repositories=[node],
        contributor_responses={"brainreg": [ContributorStatsResponse(200, 12)]},
    )

    result = await add_repositories_to_result(Result(), make_context(github=github))
    repo = result.repositories["brainreg"]

    assert repo.repo_name_with_owner == "brainglobe/brainreg"
    assert repo.license_name == "No License"
    assert repo.topics == ["neuroscience"]
    assert repo.stars_count == 42
    assert repo.forks_count == 3
    assert repo.watchers_count == 7
    assert repo.collaborators_count == 2
    assert repo.contributors_count == 12
    assert repo.projects_v2_count == 1
    assert repo.issues_enabled is True


@pytest.mark.asyncio
async def test_contributors_ready_on_second_poll(make_context):
    """A 202 followed by a 200 with five contributors yields five."""
    github = FakeGitHubClient(
        repositories=[make_repo_node("x")],
        contributor_responses={"x": [ContributorStatsResponse(202), ContributorStatsResponse(200, 5)]},
    )

    result = await add_repositories_to_result(Result(), make_context(github=github))

    assert result.repositories["x"].contributors_count == 5
    assert github.contributor_calls == ["x", "x"]


@pytest.mark.asyncio
async def test_failed_contributor_stats_default_to_zero(make_context):
    github = FakeGitHubClient(
        repositories=[make_repo_node("x"), make_repo_node("y")],
        contributor_responses={"x": [ContributorStatsResponse(404)]},
    )

    result = await add_repositories_to_result(Result(), make_context(github=github))

    assert result.repositories["x"].contributors_count == 0
    assert result.repositories["y"].contributors_count == 1
