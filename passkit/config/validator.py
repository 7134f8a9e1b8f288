"""
Configuration Validator - catch misconfigurations before serving requests.

Usage:
    passkitctl config validate --config config.yaml

Severity Levels:
    CRITICAL - Packages cannot be produced (missing directories or key material)
    HIGH     - Weak key handling (world-readable key, empty passphrase)
    LOW      - Style/operational warnings
"""

import logging
import os
import re
import shutil
import stat
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..constants import Permissions
from .settings import PasskitConfig

logger = logging.getLogger(__name__)


class LintSeverity(Enum):
    """Severity levels for lint findings."""
    CRITICAL = "critical"
    HIGH = "high"
    LOW = "low"


@dataclass
class LintFinding:
    """A single lint finding."""
    severity: LintSeverity
    section: str
    key: Optional[str]
    message: str
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        location = f"[{self.section}]"
        if self.key:
            location += f" {self.key}"
        text = f"[{self.severity.value.upper()}] {location}: {self.message}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text


@dataclass
class LintResult:
    """Result of a validation run."""
    findings: List[LintFinding] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.CRITICAL)

    @property
    def high_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.HIGH)

    @property
    def can_start(self) -> bool:
        return self.critical_count == 0

    def summary(self) -> str:
        if not self.findings:
            return "Configuration is valid"
        summary = f"Found {len(self.findings)} issues ({self.critical_count} critical, {self.high_count} high)"
        if not self.can_start:
            summary += "\nPackages will NOT be produced with this configuration"
        return summary


class ConfigValidator:
    """
    Validates a loaded PasskitConfig against the filesystem.

    Checks for:
    - Missing model, output and certificate locations
    - Missing or loosely protected key material
    - Signing backend tooling availability
    """

    def __init__(self):
        self.validators: List[Callable[[PasskitConfig, LintResult], None]] = [
            self._check_models,
            self._check_output,
            self._check_certificates,
            self._check_signing_backend,
        ]

    def validate(self, config: PasskitConfig) -> LintResult:
        result = LintResult()
        for validator in self.validators:
            validator(config, result)
        for finding in result.findings:
            logger.debug(str(finding))
        return result

    def _add(self, result: LintResult, severity: LintSeverity, section: str,
             key: Optional[str], message: str, suggestion: Optional[str] = None) -> None:
        result.findings.append(LintFinding(severity, section, key, message, suggestion))

    def _check_models(self, config: PasskitConfig, result: LintResult) -> None:
        if not config.models_dir.is_dir():
            self._add(result, LintSeverity.CRITICAL, "models", "dir",
                      f"Models directory not found: {config.models_dir}")
            return
        pattern = re.compile(rf"(?:{config.supported_types})", re.IGNORECASE)
        available = [p.name for p in config.models_dir.iterdir()
                     if p.is_dir() and pattern.fullmatch(p.stem) and p.suffix == ".pass"]
        if not available:
            self._add(result, LintSeverity.LOW, "models", "dir",
                      "No <type>.pass model directories found",
                      suggestion=f"Supported types: {config.supported_types}")

    def _check_output(self, config: PasskitConfig, result: LintResult) -> None:
        output_dir = config.output_dir
        if output_dir.exists() and not output_dir.is_dir():
            self._add(result, LintSeverity.CRITICAL, "output", "dir",
                      f"Output path exists and is not a directory: {output_dir}")
        elif output_dir.is_dir() and not os.access(output_dir, os.W_OK):
            self._add(result, LintSeverity.CRITICAL, "output", "dir",
                      f"Output directory is not writable: {output_dir}")

    def _check_certificates(self, config: PasskitConfig, result: LintResult) -> None:
        certs = config.certificates
        needed = [("key", certs.key_path)]
        if config.signing.backend != "ed25519":
            needed += [("certificate", certs.certificate_path), ("wwdr_pem", certs.wwdr_path)]

        for key, path in needed:
            if not os.access(path, os.R_OK):
                self._add(result, LintSeverity.CRITICAL, "certificates", key,
                          f"File not readable: {path}")

        if certs.key_path.is_file():
            mode = stat.S_IMODE(certs.key_path.stat().st_mode)
            if mode & Permissions.GROUP_OTHER_MASK:
                self._add(result, LintSeverity.HIGH, "certificates", "key",
                          f"Private key is accessible by group/others (mode {oct(mode)})",
                          suggestion=f"chmod {oct(Permissions.SECURE_FILE)[2:]} {certs.key_path}")

        if config.signing.backend != "ed25519" and not certs.passphrase:
            self._add(result, LintSeverity.HIGH, "certificates", "credentials",
                      "Empty key passphrase",
                      suggestion="Set credentials.dev_pem_key or PASSKIT_KEY_PASSPHRASE")

    def _check_signing_backend(self, config: PasskitConfig, result: LintResult) -> None:
        if config.signing.backend == "openssl" and shutil.which(config.signing.openssl_binary) is None:
            self._add(result, LintSeverity.CRITICAL, "signing", "openssl_binary",
                      f"Signer binary not found: {config.signing.openssl_binary}")
        if config.signing.stderr_is_fatal:
            self._add(result, LintSeverity.LOW, "signing", "stderr_is_fatal",
                      "Signer warnings on stderr will fail signing")


def validate_config(config: PasskitConfig) -> LintResult:
    """Convenience wrapper around ConfigValidator."""
    return ConfigValidator().validate(config)
