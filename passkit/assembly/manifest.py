"""
Manifest Builder.

The manifest is serialized once; the same bytes are written to the
scratch directory (for the signer) and kept in memory (for the archive),
so the signature always covers exactly what ends up in the package.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Union

from ..constants import Reserved
from ..errors import InvalidManifestInput, InvalidScratchPath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestFile:
    """Manifest bytes and the file on disk holding exactly those bytes."""
    path: Path
    data: bytes

    def read_back(self) -> bytes:
        with open(self.path, 'rb') as f:
            return f.read()


def serialize_manifest(mapping: Mapping[str, str]) -> bytes:
    """Compact JSON, keys sorted, UTF-8."""
    return json.dumps(dict(mapping), sort_keys=True, separators=(',', ':'),
                      ensure_ascii=False).encode('utf-8')


class ManifestBuilder:
    """Writes the manifest file for the signer and returns its bytes."""

    def __init__(self, filename: str = Reserved.MANIFEST):
        self.filename = filename

    def serialize(self, source: Any) -> bytes:
        if isinstance(source, str):
            return source.encode('utf-8')
        if not isinstance(source, Mapping):
            raise InvalidManifestInput(
                "Manifest source must be a mapping of file name to digest or a serialized string"
            )
        for name, digest in source.items():
            if not isinstance(name, str) or not isinstance(digest, str):
                raise InvalidManifestInput(f"Manifest entry {name!r} is not a string pair")
        return serialize_manifest(source)

    def build(self, source: Union[Mapping[str, str], str],
              scratch_dir: Union[str, os.PathLike]) -> ManifestFile:
        """
        Serialize and persist the manifest.

        Args:
            source: Mapping of file name to digest, or already serialized text
            scratch_dir: Existing request-scoped directory

        Raises:
            InvalidManifestInput: source is missing or wrong-shaped
            InvalidScratchPath: scratch_dir is not a path to an existing directory
        """
        if source is None:
            raise InvalidManifestInput("Manifest source is required")
        if not isinstance(scratch_dir, (str, os.PathLike)) or not str(scratch_dir):
            raise InvalidScratchPath("Scratch directory must be a filesystem path")
        scratch_dir = Path(scratch_dir)
        if not scratch_dir.is_dir():
            raise InvalidScratchPath(f"Scratch directory does not exist: {scratch_dir}")

        data = self.serialize(source)
        path = scratch_dir / self.filename
        with open(path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        logger.debug(f"Wrote manifest ({len(data)} bytes) to {path}")
        return ManifestFile(path=path, data=data)
