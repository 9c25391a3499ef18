"""Inclusion rules applied to repositories listed for an organization."""
from typing import Optional


def should_include_repository(
    is_archived: Optional[bool],
    is_fork: Optional[bool],
    include_archived: bool,
    include_forks: bool,
) -> bool:
    """Decide whether a listed repository is kept.

    The rule is the disjunction used by the published dashboards:
    ``not (archived and not include_archived) or not (fork and not include_forks)``.
    With both inclusion flags off, an archived repository that is not a fork
    (or a fork that is not archived) still passes; only a repository that is
    both archived and a fork is dropped. Server-side listing arguments do the
    strict filtering; this check is kept as-is pending product confirmation.

    Args:
        is_archived: Whether the repository is archived
        is_fork: Whether the repository is a fork
        include_archived: Configured archived-inclusion flag
        include_forks: Configured fork-inclusion flag

    Returns:
        True when the repository is kept
    """
    excluded_as_archived = bool(is_archived) and not include_archived
    excluded_as_fork = bool(is_fork) and not include_forks
    return not excluded_as_archived or not excluded_as_fork
