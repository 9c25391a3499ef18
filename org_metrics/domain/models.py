"""Domain models representing core business entities."""
import copy
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


NO_LICENSE = "No License"


class UnknownRepositoryError(KeyError):
    """Raised when a fetcher writes into a repository the Result does not hold."""
    pass


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@dataclass(frozen=True)
class RepositoryDescriptor:
    """Immutable listing entry for a repository discovered in an organization."""
    name: str
    name_with_owner: str
    is_fork: bool = False
    is_archived: bool = False

    @property
    def owner(self) -> str:
        """Returns the owning account login."""
        return self.name_with_owner.split("/", 1)[0]


@dataclass
class RepositoryResult:
    """One row of the dashboard, filled in incrementally by the fetchers.

    Fields left at ``None`` were never populated and are omitted from the
    serialized document. Identity fields cannot be changed once set.
    """
    repository_name: str
    repo_name_with_owner: str

    stars_count: int = 0
    watchers_count: int = 0
    forks_count: int = 0
    collaborators_count: int = 0
    contributors_count: int = 0
    license_name: str = NO_LICENSE
    topics: List[str] = field(default_factory=list)

    issues_enabled: Optional[bool] = None
    projects_enabled: Optional[bool] = None
    discussions_enabled: Optional[bool] = None
    projects_count: Optional[int] = None
    projects_v2_count: Optional[int] = None

    open_issues_count: Optional[int] = None
    closed_issues_count: Optional[int] = None
    total_issues_count: Optional[int] = None
    open_pull_requests_count: Optional[int] = None
    merged_pull_requests_count: Optional[int] = None
    discussions_count: Optional[int] = None

    # Durations in milliseconds, 0 means no data
    open_issues_median_age: Optional[int] = None
    open_issues_average_age: Optional[int] = None
    closed_issues_median_age: Optional[int] = None
    closed_issues_average_age: Optional[int] = None
    issues_response_median_age: Optional[int] = None
    issues_response_average_age: Optional[int] = None

    daily_download_count: Optional[int] = None
    weekly_download_count: Optional[int] = None
    monthly_download_count: Optional[int] = None
    total_download_count: Optional[int] = None
    conda_total_downloads: Optional[int] = None
    conda_monthly_downloads: Optional[int] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("repository_name", "repo_name_with_owner"):
            current = self.__dict__.get(name)
            if current is not None and current != value:
                raise AttributeError(f"{name} is immutable once set")
        super().__setattr__(name, value)

    def add_conda_downloads(self, total: int = 0, monthly: int = 0) -> None:
        """Accumulate Conda download counts into this record.

        Counts from several package names (current and legacy) add up.
        """
        if total:
            self.conda_total_downloads = (self.conda_total_downloads or 0) + total
        if monthly:
            self.conda_monthly_downloads = (self.conda_monthly_downloads or 0) + monthly

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase document consumed by the dashboard."""
        return {
            _to_camel(f.name): copy.copy(getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class OrganizationInfo:
    """Organization-level descriptive fields."""
    login: str
    name: Optional[str]
    description: Optional[str]
    created_at: str
    repositories_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {_to_camel(f.name): getattr(self, f.name) for f in fields(self)}


@dataclass
class Result:
    """Aggregate produced by one pipeline run for one organization."""
    created_at: Optional[str] = None
    org_info: Optional[OrganizationInfo] = None
    repositories: Dict[str, RepositoryResult] = field(default_factory=dict)

    def copy(self) -> 'Result':
        """Returns an independent deep copy of this result."""
        return copy.deepcopy(self)

    def repository(self, name: str) -> RepositoryResult:
        """Look up an existing repository record by name.

        Raises:
            UnknownRepositoryError: When no fetcher created a record for ``name``
        """
        try:
            return self.repositories[name]
        except KeyError:
            raise UnknownRepositoryError(name) from None

    def to_dict(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {"meta": {"createdAt": self.created_at}}
        if self.org_info is not None:
            document["orgInfo"] = self.org_info.to_dict()
        document["repositories"] = {
            name: repository.to_dict()
            for name, repository in self.repositories.items()
        }
        return document


@dataclass(frozen=True)
class RateLimit:
    """Remaining GitHub API quota."""
    limit: int
    remaining: int
    reset_at: Optional[datetime] = None


class ContributorStatus(Enum):
    """Retrieval state of a repository's contributor statistics."""
    PENDING = "pending"
    WAITING = "waiting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ContributorStatsResponse:
    """Outcome of one request to the contributor statistics endpoint.

    ``contributors_count`` is only meaningful for a 200 response.
    """
    status_code: int
    contributors_count: int = 0

    @property
    def is_ready(self) -> bool:
        return self.status_code == 200

    @property
    def is_computing(self) -> bool:
        return self.status_code == 202


@dataclass(frozen=True, order=True)
class Month:
    """A calendar month, the granularity of Conda snapshot files."""
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @classmethod
    def from_date(cls, value: date) -> 'Month':
        return cls(value.year, value.month)

    @property
    def label(self) -> str:
        """Returns the ``YYYY-MM`` form used in snapshot file names."""
        return f"{self.year}-{self.month:02d}"

    def next(self) -> 'Month':
        if self.month == 12:
            return Month(self.year + 1, 1)
        return Month(self.year, self.month + 1)

    def previous(self) -> 'Month':
        if self.month == 1:
            return Month(self.year - 1, 12)
        return Month(self.year, self.month - 1)
