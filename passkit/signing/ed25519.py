"""
Ed25519 signer backend (PyNaCl).

Raw 64-byte detached signature over the manifest bytes. Useful for
deployments that verify packages themselves rather than through Wallet.
The key file holds the 32-byte seed, raw or hex encoded.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict

from nacl.exceptions import CryptoError
from nacl.signing import SigningKey

from ..assembly.manifest import ManifestFile
from ..errors import SigningFailed
from .base import ManifestSigner, read_manifest_from_disk

logger = logging.getLogger(__name__)


def load_signing_key(key_path: Path) -> SigningKey:
    """Load a signing key seed, raw (32 bytes) or hex encoded (64 chars)."""
    key_data = Path(key_path).read_bytes()
    if len(key_data.strip()) == 64:
        key_data = bytes.fromhex(key_data.decode('ascii').strip())
    return SigningKey(key_data)


class Ed25519Signer(ManifestSigner):
    """Detached Ed25519 signatures; needs only the key file."""

    name = "ed25519"

    def required_files(self) -> Dict[str, Path]:
        return {'key': self.certificates.key_path}

    @property
    def public_key_hex(self) -> str:
        return bytes(load_signing_key(self.certificates.key_path).verify_key).hex()

    def _sign_sync(self, manifest: ManifestFile) -> bytes:
        data = read_manifest_from_disk(manifest)
        try:
            signing_key = load_signing_key(self.certificates.key_path)
            return bytes(signing_key.sign(data).signature)
        except (OSError, ValueError, TypeError, CryptoError) as e:
            raise SigningFailed("Ed25519 signing failed", str(e).encode()) from e

    async def _sign(self, manifest: ManifestFile) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._sign_sync, manifest)
