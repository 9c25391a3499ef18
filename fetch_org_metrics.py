"""Main entry point for the organization metrics fetcher.

Runs the fetcher pipeline once per configured organization and writes one
JSON document per organization for the dashboard.
"""
import asyncio
import logging
import sys
from typing import List
from dotenv import load_dotenv
from org_metrics.application.conda_fetcher import add_conda_data
from org_metrics.application.downloads_fetcher import add_downloads_pepy
from org_metrics.application.issue_fetcher import (
    add_discussion_data,
    add_issue_and_pr_data,
    add_issue_metrics_data,
)
from org_metrics.application.organization_fetcher import (
    add_meta_to_result,
    add_organization_info_to_result,
)
from org_metrics.application.pipeline_runner import Fetcher, PipelineContext, PipelineRunner
from org_metrics.application.repository_fetcher import add_repositories_to_result
from org_metrics.config import ConfigurationError, OrganizationConfig, Settings, load_settings
from org_metrics.domain.legacy_packages import LegacyPackageMap
from org_metrics.infrastructure.conda_snapshot_store import CondaSnapshotStore
from org_metrics.infrastructure.github_client import GitHubClient
from org_metrics.infrastructure.json_result_storage import JsonResultStorage
from org_metrics.infrastructure.pepy_client import PePyClient

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logger = logging.getLogger(__name__)

FETCHERS: List[Fetcher] = [
    add_meta_to_result,
    add_organization_info_to_result,
    add_repositories_to_result,
    add_issue_and_pr_data,
    add_discussion_data,
    add_issue_metrics_data,
    add_downloads_pepy,
    add_conda_data,
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


async def run_organization(
    settings: Settings,
    org_config: OrganizationConfig,
    github_client: GitHubClient,
    storage: JsonResultStorage,
) -> None:
    """Fetch and store the metrics of one organization.

    Nothing is written when any fetcher fails.
    """
    downloads = PePyClient(settings.pepy_api_key)
    snapshots = CondaSnapshotStore(settings.conda_cache_dir)
    context = PipelineContext(
        config=org_config,
        github=github_client,
        downloads=downloads,
        snapshots=snapshots,
        legacy_packages=LegacyPackageMap.from_file(
            settings.legacy_packages_path(org_config.organization)
        ),
        conda_start_year=settings.conda_start_year,
        contributor_retry_delay=settings.contributor_retry_delay,
        contributor_max_retries=settings.contributor_max_retries,
    )

    try:
        result = await PipelineRunner(context, FETCHERS).run()
        storage.save_result(result, org_config.organization)
    finally:
        await downloads.close()
        await snapshots.close()


async def main() -> int:
    """Execute the pipeline for every configured organization.

    Returns:
        Process exit code, non-zero when any organization failed
    """
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging("INFO")
        logger.error(f"Configuration error: {e}")
        return 1

    configure_logging(settings.log_level)
    logger.info("Starting GitHub organization metrics fetcher")

    github_client = GitHubClient(settings.graphql_token)
    storage = JsonResultStorage(settings.output_dir)
    failed = []

    try:
        for org_config in settings.organizations:
            logger.info(f"Fetching data for organization {org_config.organization}")
            logger.info(
                f"Configuration: includeForks={org_config.include_forks}, "
                f"includeArchived={org_config.include_archived}, since={org_config.since_iso}"
            )
            try:
                await run_organization(settings, org_config, github_client, storage)
            except Exception as e:
                logger.error(f"Run for {org_config.organization} failed: {e}", exc_info=True)
                failed.append(org_config.organization)
                continue
            logger.info(f"Finished fetching data for organization {org_config.organization}")
    finally:
        await github_client.close()

    if failed:
        logger.error(f"Failed organizations: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
