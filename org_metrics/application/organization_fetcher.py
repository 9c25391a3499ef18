"""Fetchers for run metadata and organization-level information."""
import logging
from org_metrics.application.pipeline_runner import PipelineContext
from org_metrics.domain.models import OrganizationInfo, Result


logger = logging.getLogger(__name__)

ORGANIZATION_INFO_QUERY = """
    query ($organization: String!) {
        organization(login: $organization) {
            login
            name
            description
            createdAt
            repositories(privacy: PUBLIC) {
                totalCount
            }
        }
    }
"""


async def add_meta_to_result(result: Result, context: PipelineContext) -> Result:
    """Stamp the run time."""
    result.created_at = context.clock().isoformat()
    return result


async def add_organization_info_to_result(result: Result, context: PipelineContext) -> Result:
    """Record the organization's descriptive fields."""
    data = await context.github.execute(
        ORGANIZATION_INFO_QUERY,
        {"organization": context.config.organization},
    )
    organization = data.get("organization")
    if organization is None:
        raise ValueError(f"Organization {context.config.organization} not found")

    result.org_info = OrganizationInfo(
        login=organization["login"],
        name=organization.get("name"),
        description=organization.get("description"),
        created_at=organization["createdAt"],
        repositories_count=(organization.get("repositories") or {}).get("totalCount", 0),
    )
    logger.info(
        f"Organization {result.org_info.login} has "
        f"{result.org_info.repositories_count} public repositories"
    )
    return result
