"""
Configuration Module for the Pass Package Assembler.

Provides:
- Frozen configuration objects passed to each component
- JSON and YAML configuration files
- Lint-style validation against the filesystem
"""

from .settings import (
    PasskitConfig,
    CertificateConfig,
    SigningConfig,
    AssemblyConfig,
    ServerConfig,
    LoggingSettings,
    ConfigFormat,
    SIGNING_BACKENDS,
    config_from_dict,
    read_config_file,
    load_config,
)
from .validator import (
    ConfigValidator,
    LintFinding,
    LintResult,
    LintSeverity,
    validate_config,
)

__all__ = [
    'PasskitConfig',
    'CertificateConfig',
    'SigningConfig',
    'AssemblyConfig',
    'ServerConfig',
    'LoggingSettings',
    'ConfigFormat',
    'SIGNING_BACKENDS',
    'config_from_dict',
    'read_config_file',
    'load_config',
    'ConfigValidator',
    'LintFinding',
    'LintResult',
    'LintSeverity',
    'validate_config',
]
