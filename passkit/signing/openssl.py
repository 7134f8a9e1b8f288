"""
OpenSSL signer backend.

Spawns ``openssl smime`` to produce a detached, DER encoded PKCS#7
signature of the manifest file. The process exit status decides success;
anything written to stderr is logged as context (or, with
``stderr_is_fatal``, treated as failure the way the first releases did).
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

from ..assembly.manifest import ManifestFile
from ..config import CertificateConfig
from ..constants import Defaults, SIGNER_PASSPHRASE_ENV, Timeouts
from ..errors import SigningFailed
from .base import ManifestSigner, read_manifest_from_disk

logger = logging.getLogger(__name__)


class OpenSSLSigner(ManifestSigner):
    """Detached PKCS#7 signatures through the openssl command line tool."""

    name = "openssl"

    def __init__(
        self,
        certificates: CertificateConfig,
        binary: str = Defaults.OPENSSL_BINARY,
        timeout: Optional[float] = Timeouts.SIGNER_DEFAULT,
        stderr_is_fatal: bool = False,
    ):
        super().__init__(certificates)
        self.binary = binary
        self.timeout = timeout
        self.stderr_is_fatal = stderr_is_fatal

    def build_command(self, manifest_path: Path) -> List[str]:
        certs = self.certificates
        return [
            self.binary, "smime",
            "-binary",
            "-sign",
            "-certfile", str(certs.wwdr_path.resolve()),
            "-signer", str(certs.certificate_path.resolve()),
            "-inkey", str(certs.key_path.resolve()),
            "-in", str(Path(manifest_path).resolve()),
            "-outform", "DER",
            # Passphrase travels in the child's environment, never in argv
            "-passin", f"env:{SIGNER_PASSPHRASE_ENV}",
        ]

    def _environment(self) -> dict:
        env = dict(os.environ)
        env[SIGNER_PASSPHRASE_ENV] = self.certificates.passphrase
        return env

    async def _sign(self, manifest: ManifestFile) -> bytes:
        read_manifest_from_disk(manifest)
        cmd = self.build_command(manifest.path)
        logger.debug(f"Spawning signer: {' '.join(cmd[:2])} ... -in {manifest.path}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(),
            )
        except OSError as e:
            raise SigningFailed(f"Unable to start signer '{self.binary}'", str(e).encode()) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._kill(process)
            raise SigningFailed(f"Signer did not finish within {self.timeout}s")
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        return self._interpret(process.returncode, stdout, stderr)

    def _interpret(self, returncode: int, stdout: bytes, stderr: bytes) -> bytes:
        if returncode != 0:
            raise SigningFailed(f"Signer exited with status {returncode}",
                                stderr or stdout, returncode)

        if stderr:
            if self.stderr_is_fatal:
                raise SigningFailed("Signer reported diagnostics", stderr, returncode)
            logger.warning(
                f"Signer succeeded with diagnostics: {stderr.decode('utf-8', errors='replace').strip()}"
            )

        if not stdout:
            raise SigningFailed("Signer produced no signature", stderr, returncode)
        return stdout

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=Timeouts.SIGNER_KILL_GRACE)
        except asyncio.TimeoutError:
            logger.error(f"Signer process {process.pid} did not exit after kill")
