"""Static mapping from current package names to their historical names."""
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union


logger = logging.getLogger(__name__)


class LegacyPackageMap:
    """Immutable map of current package name -> legacy package names.

    Used to fold downloads published under old distribution names into the
    record of the repository that now owns the package.
    """

    def __init__(self, mapping: Optional[Mapping[str, Sequence[str]]] = None):
        current_to_legacy: Dict[str, Tuple[str, ...]] = {}
        legacy_to_current: Dict[str, str] = {}

        for current, legacy_names in (mapping or {}).items():
            if isinstance(legacy_names, str):
                legacy_names = [legacy_names]
            current_to_legacy[current] = tuple(legacy_names)
            for legacy in legacy_names:
                owner = legacy_to_current.setdefault(legacy, current)
                if owner != current:
                    raise ValueError(
                        f"Legacy package '{legacy}' is claimed by both "
                        f"'{owner}' and '{current}'"
                    )

        self._current_to_legacy = MappingProxyType(current_to_legacy)
        self._legacy_to_current = MappingProxyType(legacy_to_current)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'LegacyPackageMap':
        """Load a map from a JSON file; a missing file yields an empty map."""
        path = Path(path)
        if not path.exists():
            logger.info(f"No legacy package file at {path}, using empty map")
            return cls()

        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Legacy package file {path} must hold a JSON object")

        logger.info(f"Loaded {len(data)} legacy package entries from {path}")
        return cls(data)

    def current_name(self, name: str) -> str:
        """Map a legacy name to its current name; other names map to themselves."""
        return self._legacy_to_current.get(name, name)

    def query_names(self, current_names: Iterable[str]) -> List[str]:
        """Union of the given current names and every known legacy name.

        Order is stable: current names first, then legacy names.
        """
        names = list(dict.fromkeys(current_names))
        seen = set(names)
        for legacy in self._legacy_to_current:
            if legacy not in seen:
                names.append(legacy)
                seen.add(legacy)
        return names

    def __len__(self) -> int:
        return len(self._current_to_legacy)
