"""JSON file implementation of result storage."""
import json
import logging
import os
from pathlib import Path
from typing import Union
from org_metrics.domain.result_storage_interface import IResultStorage
from org_metrics.domain.models import Result


logger = logging.getLogger(__name__)


class JsonResultStorage(IResultStorage):
    """Writes one ``data_<organization>.json`` document per organization.

    The dashboard reads these files directly, so each write goes to a
    temporary file that is renamed over the previous document.
    """

    def __init__(self, output_dir: Union[str, Path]):
        """Initialize storage.

        Args:
            output_dir: Directory the dashboard loads its data from
        """
        self._output_dir = Path(output_dir)

    def path_for(self, organization: str) -> Path:
        return self._output_dir / f"data_{organization}.json"

    def save_result(self, result: Result, organization: str) -> Path:
        """Serialize the result and replace the organization's document.

        Args:
            result: Completed Result
            organization: Organization name used in the file name

        Returns:
            Path of the written document
        """
        target = self.path_for(organization)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")

        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(result.to_dict(), fh, indent=2)
                fh.write("\n")
            os.replace(tmp, target)
        except Exception as e:
            logger.error(f"Error writing result for {organization}: {e}")
            if tmp.exists():
                tmp.unlink()
            raise

        logger.info(f"Wrote result to {target}")
        return target
