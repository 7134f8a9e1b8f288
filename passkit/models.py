"""
Pass model lookup.

Maps a package type ("event", "coupon", ...) to its model directory
`<models_dir>/<type>.pass`, refusing types outside the allow-list.
"""

import logging
import re
from pathlib import Path
from typing import List

from .config import PasskitConfig
from .constants import Defaults
from .errors import SourceNotFound, UnsupportedPackageType

logger = logging.getLogger(__name__)


class ModelRepository:
    """Resolves package types to pass model directories."""

    def __init__(self, config: PasskitConfig):
        self.models_dir = Path(config.models_dir)
        self.supported_types = config.supported_types
        # fullmatch, so "myevent" and "event\n" never pass
        self._pattern = re.compile(rf"(?:{config.supported_types})", re.IGNORECASE)

    def is_supported(self, package_type: str) -> bool:
        return bool(package_type) and self._pattern.fullmatch(package_type) is not None

    def normalize(self, package_type: str) -> str:
        """Validate a package type and return its canonical (lower-case) form."""
        if not isinstance(package_type, str) or not self.is_supported(package_type):
            raise UnsupportedPackageType(str(package_type), self.supported_types)
        return package_type.lower()

    def model_path(self, package_type: str) -> Path:
        return self.models_dir / f"{self.normalize(package_type)}{Defaults.MODEL_SUFFIX}"

    def resolve(self, package_type: str) -> Path:
        """Return the model directory for a package type, or raise."""
        path = self.model_path(package_type)
        if not path.is_dir():
            logger.info(f"No model directory for type '{package_type}' at {path}")
            raise SourceNotFound(str(path))
        return path

    def list_types(self) -> List[str]:
        """Supported types with a model directory present, sorted."""
        if not self.models_dir.is_dir():
            return []
        types = []
        for entry in self.models_dir.iterdir():
            if entry.suffix == Defaults.MODEL_SUFFIX and entry.is_dir() and self.is_supported(entry.stem):
                types.append(entry.stem.lower())
        return sorted(types)
