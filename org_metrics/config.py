"""Configuration loading from the environment and ``config.yml``."""
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from dateutil import parser as date_parser


logger = logging.getLogger(__name__)

DEFAULT_SINCE_DAYS = 365


class ConfigurationError(Exception):
    """Raised when required configuration is missing or malformed."""
    pass


@dataclass(frozen=True)
class OrganizationConfig:
    """Settings for one organization's pipeline run."""
    organization: str
    include_forks: bool = False
    include_archived: bool = False
    since: Optional[datetime] = None

    @property
    def since_iso(self) -> Optional[str]:
        """``since`` formatted as a GraphQL DateTime."""
        if self.since is None:
            return None
        return self.since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Settings:
    """Application-wide settings shared by every organization run."""
    graphql_token: str
    pepy_api_key: str
    organizations: List[OrganizationConfig] = field(default_factory=list)
    output_dir: str = "app/src/data"
    conda_cache_dir: str = str(Path.home() / ".dashboard")
    conda_start_year: int = 2018
    contributor_retry_delay: float = 60.0
    contributor_max_retries: Optional[int] = 10
    legacy_packages_dir: str = "legacy_packages"
    log_level: str = "INFO"

    def legacy_packages_path(self, organization: str) -> Path:
        return Path(self.legacy_packages_dir) / f"{organization}.json"


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_since(value: Any, now: datetime) -> datetime:
    """Parse the ``since`` setting; defaults to one year before ``now``."""
    if value is None or value == "":
        return now - timedelta(days=DEFAULT_SINCE_DAYS)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, OverflowError) as e:
            raise ConfigurationError(f"Invalid since date {value!r}: {e}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_int(value: Optional[str], name: str, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read ``config.yml``; a missing or unreadable file yields an empty config."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file not found at {path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error reading config file at {path}: {e}")
        return {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    config_path: Union[str, Path] = "config.yml",
    now: Optional[datetime] = None,
) -> Settings:
    """Build Settings from environment variables and the YAML config file.

    Args:
        env: Environment mapping, ``os.environ`` by default
        config_path: Location of ``config.yml``
        now: Reference time for the default ``since`` date

    Returns:
        Validated settings

    Raises:
        ConfigurationError: When a required credential or the organization
            is missing, or a value cannot be parsed
    """
    env = os.environ if env is None else env
    now = now or datetime.now(timezone.utc)

    graphql_token = env.get("GRAPHQL_TOKEN")
    if not graphql_token:
        raise ConfigurationError("GRAPHQL_TOKEN environment variable is required")
    pepy_api_key = env.get("PEPY_API_KEY")
    if not pepy_api_key:
        raise ConfigurationError("PEPY_API_KEY environment variable is required")

    file_config = read_config_file(config_path)

    env_organization = env.get("ORGANIZATION_NAME")
    configured = file_config.get("organization")
    if env_organization:
        organization_names = [env_organization]
    elif isinstance(configured, str):
        organization_names = [configured]
    elif isinstance(configured, list):
        organization_names = [str(name) for name in configured if name]
    else:
        organization_names = []

    if not organization_names:
        raise ConfigurationError(
            "ORGANIZATION_NAME environment variable or `organization` in config.yml is required"
        )

    include_forks = _parse_bool(file_config.get("includeForks", False), "includeForks")
    include_archived = _parse_bool(file_config.get("includeArchived", False), "includeArchived")
    since = _parse_since(file_config.get("since"), now)

    organizations = [
        OrganizationConfig(
            organization=name,
            include_forks=include_forks,
            include_archived=include_archived,
            since=since,
        )
        for name in organization_names
    ]

    retry_delay = env.get("CONTRIBUTOR_STATS_RETRY_DELAY")
    try:
        contributor_retry_delay = float(retry_delay) if retry_delay else 60.0
    except ValueError:
        raise ConfigurationError(
            f"CONTRIBUTOR_STATS_RETRY_DELAY must be a number, got {retry_delay!r}"
        ) from None

    max_retries = _parse_int(env.get("CONTRIBUTOR_STATS_MAX_RETRIES"), "CONTRIBUTOR_STATS_MAX_RETRIES", 10)
    if max_retries is not None and max_retries < 0:
        # A negative ceiling disables the limit
        max_retries = None

    return Settings(
        graphql_token=graphql_token,
        pepy_api_key=pepy_api_key,
        organizations=organizations,
        output_dir=env.get("OUTPUT_DIR") or "app/src/data",
        conda_cache_dir=env.get("CONDA_CACHE_DIR") or str(Path.home() / ".dashboard"),
        conda_start_year=_parse_int(env.get("CONDA_START_YEAR"), "CONDA_START_YEAR", 2018),
        contributor_retry_delay=contributor_retry_delay,
        contributor_max_retries=max_retries,
        legacy_packages_dir=env.get("LEGACY_PACKAGES_DIR") or "legacy_packages",
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
