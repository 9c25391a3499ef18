"""Result storage interface (port) for the per-organization output artifact.

This is the port in hexagonal architecture that the infrastructure layer implements.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from org_metrics.domain.models import Result


class IResultStorage(ABC):
    """Abstract interface for persisting a finished Result."""

    @abstractmethod
    def save_result(self, result: Result, organization: str) -> Path:
        """Persist the result of one organization's run.

        Should replace any previous output for the organization in one step,
        so readers never observe a half-written document.

        Args:
            result: Completed Result to persist
            organization: Organization the result belongs to

        Returns:
            Location of the written artifact
        """
        pass
