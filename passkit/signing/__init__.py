"""
Signature Service.

Backends:
- openssl: external ``openssl smime`` process (default)
- pkcs7:   in-process PKCS#7 with cryptography
- ed25519: in-process Ed25519 with PyNaCl
"""

from ..config import PasskitConfig
from ..errors import ConfigurationError
from .base import ManifestSigner, read_manifest_from_disk
from .openssl import OpenSSLSigner
from .pkcs7 import PKCS7Signer
from .ed25519 import Ed25519Signer


def create_signer(config: PasskitConfig) -> ManifestSigner:
    """Build the signer selected by ``signing.backend``."""
    backend = config.signing.backend
    if backend == "openssl":
        return OpenSSLSigner(
            config.certificates,
            binary=config.signing.openssl_binary,
            timeout=config.signing.timeout,
            stderr_is_fatal=config.signing.stderr_is_fatal,
        )
    if backend == "pkcs7":
        return PKCS7Signer(config.certificates)
    if backend == "ed25519":
        return Ed25519Signer(config.certificates)
    raise ConfigurationError(f"Unknown signing backend '{backend}'")


__all__ = [
    'ManifestSigner',
    'OpenSSLSigner',
    'PKCS7Signer',
    'Ed25519Signer',
    'create_signer',
    'read_manifest_from_disk',
]
