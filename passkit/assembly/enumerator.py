"""
Content enumeration for a pass model directory.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from ..constants import Reserved
from ..errors import EmptySource, MissingRequiredEntry, SourceNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceFile:
    """A content file of the model, immutable for the request's lifetime."""
    name: str
    path: Path


def remove_dot_files(names: List[str]) -> List[str]:
    """Drop hidden entries (.DS_Store, .git, ...)."""
    return [n for n in names if not n.startswith(Reserved.HIDDEN_PREFIX)]


class ContentEnumerator:
    """
    Lists a model directory and validates it can become a package.

    Raises SourceNotFound, EmptySource or MissingRequiredEntry; all three
    end the request.
    """

    def __init__(self, required_entry: str = Reserved.REQUIRED_ENTRY):
        self.required_entry = required_entry

    def enumerate(self, directory: Union[str, Path]) -> List[SourceFile]:
        directory = Path(directory)
        try:
            names = os.listdir(directory)
        except OSError as e:
            raise SourceNotFound(str(directory), e) from e

        names = remove_dot_files(names)
        if not names:
            raise EmptySource(str(directory))
        if self.required_entry not in names:
            raise MissingRequiredEntry(str(directory), self.required_entry)

        sources = []
        for name in sorted(names):
            if name in Reserved.generated():
                logger.debug(f"Skipping pipeline-generated name in model: {name}")
                continue
            path = directory / name
            if not path.is_file():
                logger.warning(f"Skipping non-file model entry: {path}")
                continue
            sources.append(SourceFile(name=name, path=path))

        logger.debug(f"Enumerated {len(sources)} content files in {directory}")
        return sources
