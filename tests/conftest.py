"""
Pytest configuration and shared fixtures for Pass Package Assembler tests.

Provides pass models, a throwaway signing identity (chain certificate,
signer certificate, encrypted key), configurations built on them and a
stand-in for the openssl binary.
"""

import hashlib
import logging
import os
import shutil
import stat
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, Generator

import pytest

# Add the parent directory to the path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from passkit.config import config_from_dict
from passkit.logging_config import PasskitFormatter
from passkit.signing import ManifestSigner


PASSPHRASE = "test-passphrase"

DEFAULT_MODEL_FILES = {
    "pass.json": b'{"a":1}',
    "icon.png": b"PNGDATA",
    ".DS_Store": b"finder junk",
}


def sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


# ===========================================================================
# Environment
# ===========================================================================

@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host PASSKIT_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("PASSKIT_") or name.startswith("FAKE_OPENSSL_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by setup_logging during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, PasskitFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="passkit_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


# ===========================================================================
# Pass Models
# ===========================================================================

@pytest.fixture
def models_dir(temp_dir: Path) -> Path:
    path = temp_dir / "models"
    path.mkdir()
    return path


@pytest.fixture
def make_model(models_dir: Path):
    """Factory creating <models_dir>/<type>.pass with the given files."""
    def _make(package_type: str = "event", files: Dict[str, bytes] = None) -> Path:
        model = models_dir / f"{package_type}.pass"
        model.mkdir(parents=True, exist_ok=True)
        for name, content in (DEFAULT_MODEL_FILES if files is None else files).items():
            (model / name).write_bytes(content)
        return model
    return _make


# ===========================================================================
# Signing Identity
# ===========================================================================

def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def write_identity(cert_dir: Path, passphrase: str = PASSPHRASE) -> SimpleNamespace:
    """Create a chain certificate and a signer certificate/key pair."""
    cert_dir.mkdir(parents=True, exist_ok=True)
    now = datetime.now(timezone.utc)

    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("Test WWDR Authority"))
        .issuer_name(_name("Test WWDR Authority"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )

    signer_key = ec.generate_private_key(ec.SECP256R1())
    signer_cert = (
        x509.CertificateBuilder()
        .subject_name(_name("Test Pass Signer"))
        .issuer_name(ca_cert.subject)
        .public_key(signer_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(ca_key, hashes.SHA256())
    )

    (cert_dir / "wwdr.pem").write_bytes(ca_cert.public_bytes(serialization.Encoding.PEM))
    (cert_dir / "signerCert.pem").write_bytes(signer_cert.public_bytes(serialization.Encoding.PEM))
    key_path = cert_dir / "signerKey.pem"
    key_path.write_bytes(signer_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(passphrase.encode()),
    ))
    os.chmod(key_path, stat.S_IRUSR | stat.S_IWUSR)

    return SimpleNamespace(
        dir=cert_dir,
        passphrase=passphrase,
        ca_cert=ca_cert,
        signer_cert=signer_cert,
        signer_key=signer_key,
    )


@pytest.fixture
def identity(temp_dir: Path) -> SimpleNamespace:
    return write_identity(temp_dir / "certificates")


@pytest.fixture
def ed25519_seed(identity) -> bytes:
    """Write a hex encoded Ed25519 seed as the key file; returns the seed."""
    seed = bytes(range(32))
    key_path = identity.dir / "ed25519.key"
    key_path.write_text(seed.hex())
    os.chmod(key_path, stat.S_IRUSR | stat.S_IWUSR)
    return seed


# ===========================================================================
# Configuration
# ===========================================================================

@pytest.fixture
def make_config(temp_dir: Path, models_dir: Path, identity):
    """Factory for PasskitConfig; keyword arguments update config sections."""
    scratch_root = temp_dir / "scratch"
    scratch_root.mkdir(exist_ok=True)

    def _make(**sections):
        data = {
            'models': {'dir': str(models_dir)},
            'output': {'dir': str(temp_dir / "output")},
            'certificates': {
                'dir': str(identity.dir),
                'files': {
                    'certificate': 'signerCert.pem',
                    'key': 'signerKey.pem',
                    'wwdr_pem': 'wwdr.pem',
                },
                'credentials': {'dev_pem_key': identity.passphrase},
            },
            'signing': {'backend': 'pkcs7'},
            'assembly': {'scratch_root': str(scratch_root)},
        }
        for section, values in sections.items():
            data.setdefault(section, {}).update(values)
        return config_from_dict(data, base_dir=temp_dir)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


# ===========================================================================
# Signers
# ===========================================================================

FAKE_OPENSSL = """#!/bin/sh
# Stand-in for `openssl smime -sign`: echoes the signed file back.
if [ -n "$FAKE_OPENSSL_ARGS" ]; then printf '%s\\n' "$@" > "$FAKE_OPENSSL_ARGS"; fi
if [ -n "$FAKE_OPENSSL_PASS_OUT" ]; then printf '%s' "$PASSKIT_SIGNER_PASSPHRASE" > "$FAKE_OPENSSL_PASS_OUT"; fi
case "$FAKE_OPENSSL_MODE" in
  fail) echo "unable to load signing key" >&2; exit 3 ;;
  warn) echo "Warning: certificate expires soon" >&2 ;;
  empty) exit 0 ;;
  hang) exec sleep 30 ;;
esac
input=""
while [ $# -gt 0 ]; do
  if [ "$1" = "-in" ]; then input="$2"; fi
  shift
done
printf 'SIGNED:'
cat "$input"
"""


@pytest.fixture
def fake_openssl(temp_dir: Path) -> Path:
    """Executable that behaves like a successful openssl signer."""
    if sys.platform == "win32":
        pytest.skip("requires a POSIX shell")
    path = temp_dir / "fake-openssl"
    path.write_text(FAKE_OPENSSL)
    path.chmod(0o755)
    return path


class EchoSigner(ManifestSigner):
    """Signer returning a marker plus the manifest bytes; no key material needed."""

    name = "echo"

    def __init__(self, certificates=None):
        super().__init__(certificates)
        self.calls = []

    def required_files(self):
        return {}

    async def _sign(self, manifest):
        data = manifest.read_back()
        self.calls.append(manifest.path)
        return b"SIG:" + data


@pytest.fixture
def echo_signer() -> EchoSigner:
    return EchoSigner()
