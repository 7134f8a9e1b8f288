"""
In-process PKCS#7 signer backend (cryptography).

Produces the same detached, DER encoded signature as the openssl backend
without spawning a process. Certificates and keys may be PEM or DER.
"""

import asyncio
import logging
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from ..assembly.manifest import ManifestFile
from ..errors import SigningFailed
from .base import ManifestSigner, read_manifest_from_disk

logger = logging.getLogger(__name__)

PEM_MARKER = b"-----BEGIN"


def load_certificate(path: Path) -> x509.Certificate:
    data = Path(path).read_bytes()
    if PEM_MARKER in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def load_private_key(path: Path, passphrase: str):
    data = Path(path).read_bytes()
    password = passphrase.encode('utf-8') if passphrase else None
    if PEM_MARKER in data:
        return serialization.load_pem_private_key(data, password=password)
    return serialization.load_der_private_key(data, password=password)


class PKCS7Signer(ManifestSigner):
    """Detached S/MIME (PKCS#7) signatures computed in-process."""

    name = "pkcs7"

    def _sign_sync(self, manifest: ManifestFile) -> bytes:
        data = read_manifest_from_disk(manifest)
        certs = self.certificates
        try:
            signer_cert = load_certificate(certs.certificate_path)
            chain_cert = load_certificate(certs.wwdr_path)
            key = load_private_key(certs.key_path, certs.passphrase)

            builder = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(data)
                .add_signer(signer_cert, key, hashes.SHA256())
                .add_certificate(chain_cert)
            )
            return builder.sign(
                serialization.Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
            )
        except (OSError, ValueError, TypeError) as e:
            raise SigningFailed("PKCS#7 signing failed", str(e).encode()) from e

    async def _sign(self, manifest: ManifestFile) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._sign_sync, manifest)
