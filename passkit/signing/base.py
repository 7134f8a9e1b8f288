"""
Signer interface.

Callers only see ``sign(manifest) -> bytes``; the key material stays
behind the backend, be it an external process or an in-process library.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

from ..assembly.manifest import ManifestFile
from ..config import CertificateConfig
from ..errors import SigningFailed, SigningPrerequisitesUnavailable

logger = logging.getLogger(__name__)


class ManifestSigner(ABC):
    """Produces a detached signature over the manifest bytes on disk."""

    name = "abstract"

    def __init__(self, certificates: CertificateConfig):
        self.certificates = certificates

    def required_files(self) -> Dict[str, Path]:
        """Files that must be readable before signing is attempted."""
        return {
            'certificate': self.certificates.certificate_path,
            'key': self.certificates.key_path,
        }

    def check_prerequisites(self) -> None:
        """Raise SigningPrerequisitesUnavailable if key material is not accessible."""
        missing = [
            f"{label} ({path})"
            for label, path in self.required_files().items()
            if not os.access(path, os.R_OK)
        ]
        if missing:
            raise SigningPrerequisitesUnavailable(missing)

    async def sign(self, manifest: ManifestFile) -> bytes:
        """
        Sign the manifest file.

        Args:
            manifest: Manifest bytes and the scratch file holding them

        Returns:
            Detached signature bytes

        Raises:
            SigningPrerequisitesUnavailable: before any signing work starts
            SigningFailed: the backend could not produce a signature
        """
        self.check_prerequisites()
        signature = await self._sign(manifest)
        if not signature:
            raise SigningFailed(f"{self.name} signer produced an empty signature")
        logger.info(f"Signed manifest with {self.name} ({len(signature)} bytes)")
        return signature

    @abstractmethod
    async def _sign(self, manifest: ManifestFile) -> bytes:
        ...


def read_manifest_from_disk(manifest: ManifestFile) -> bytes:
    """Read the manifest the signer will cover, refusing a drifted file."""
    try:
        data = manifest.read_back()
    except OSError as e:
        raise SigningFailed(f"Unable to read manifest {manifest.path}", str(e).encode()) from e
    if data != manifest.data:
        raise SigningFailed(f"Manifest on disk differs from the packaged manifest: {manifest.path}")
    return data
