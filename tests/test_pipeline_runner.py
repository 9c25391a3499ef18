"""Tests for the pipeline runner and the entry script."""
import pytest
from conftest import FakeGitHubClient
from org_metrics.application.pipeline_runner import PipelineRunner
from org_metrics.domain.models import RepositoryResult


@pytest.mark.asyncio
async def test_fetchers_run_in_order_with_rate_limit_checks(make_context):
    github = FakeGitHubClient()
    order = []

    async def add_first(result, context):
        order.append("first")
        result.repositories["a"] = RepositoryResult(repository_name="a", repo_name_with_owner="o/a")
        return result

    async def add_second(result, context):
        order.append("second")
        result.repository("a").stars_count = 5
        return result

    result = await PipelineRunner(make_context(github=github), [add_first, add_second]).run()

    assert order == ["first", "second"]
    assert result.repositories["a"].stars_count == 5
    assert github.rate_limit_checks == 2


@pytest.mark.asyncio
async def test_each_fetcher_receives_a_copy(make_context):
    seen = []

    async def capture(result, context):
        seen.append(result)
        result.created_at = "mutated"
        return result

    async def check(result, context):
        assert result is not seen[0]
        assert result.created_at == "mutated"
        return result

    await PipelineRunner(make_context(), [capture, check]).run()


@pytest.mark.asyncio
async def test_failing_fetcher_aborts_the_run(make_context):
    github = FakeGitHubClient()
    calls = []

    async def boom(result, context):
        raise RuntimeError("bad credentials")

    async def never(result, context):
        calls.append("never")
        return result

    with pytest.raises(RuntimeError, match="bad credentials"):
        await PipelineRunner(make_context(github=github), [boom, never]).run()

    assert calls == []
    assert github.rate_limit_checks == 0


def test_entry_script_fetcher_order():
    import fetch_org_metrics

    names = [fetcher.__name__ for fetcher in fetch_org_metrics.FETCHERS]

    assert names == [
        "add_meta_to_result",
        "add_organization_info_to_result",
        "add_repositories_to_result",
        "add_issue_and_pr_data",
        "add_discussion_data",
        "add_issue_metrics_data",
        "add_downloads_pepy",
        "add_conda_data",
    ]


@pytest.mark.asyncio
async def test_entry_script_exits_on_missing_credentials(monkeypatch, tmp_path):
    import fetch_org_metrics

    monkeypatch.delenv("GRAPHQL_TOKEN", raising=False)
    monkeypatch.delenv("PEPY_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)

    assert await fetch_org_metrics.main() == 1


@pytest.mark.asyncio
async def test_entry_script_isolates_organization_failures(monkeypatch, tmp_path):
    import fetch_org_metrics

    monkeypatch.setenv("GRAPHQL_TOKEN", "ghp_test")
    monkeypatch.setenv("PEPY_API_KEY", "key")
    monkeypatch.delenv("ORGANIZATION_NAME", raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yml").write_text("organization:\n  - broken\n  - healthy\n")

    attempted = []

    async def fake_run_organization(settings, org_config, github_client, storage):
        attempted.append(org_config.organization)
        if org_config.organization == "broken":
            raise RuntimeError("boom")

    monkeypatch.setattr(fetch_org_metrics, "run_organization", fake_run_organization)

    assert await fetch_org_metrics.main() == 1
    assert attempted == ["broken", "healthy"]
