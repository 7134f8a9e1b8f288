"""
Pass Package Assembler - signed, tamper-evident pass archives
"""

__version__ = "1.0.0"

# Installs PasskitLogger as the logger class before any module logger exists
from . import logging_config

from .constants import (
    Reserved,
    Timeouts,
    BufferSizes,
    Permissions,
    MediaTypes,
    Defaults,
    RuntimeConfig,
)
from .errors import (
    PasskitError,
    ConfigurationError,
    ClientError,
    UnsupportedPackageType,
    SourceNotFound,
    EmptySource,
    MissingRequiredEntry,
    FileReadFailure,
    InvalidManifestInput,
    InvalidScratchPath,
    SigningPrerequisitesUnavailable,
    SigningFailed,
    ArchiveWriteFailure,
)
from .config import PasskitConfig, load_config, config_from_dict
from .models import ModelRepository
from .pipeline import PassAssembler, PackageResult

__all__ = [
    '__version__',
    'Reserved',
    'Timeouts',
    'BufferSizes',
    'Permissions',
    'MediaTypes',
    'Defaults',
    'RuntimeConfig',
    'PasskitError',
    'ConfigurationError',
    'ClientError',
    'UnsupportedPackageType',
    'SourceNotFound',
    'EmptySource',
    'MissingRequiredEntry',
    'FileReadFailure',
    'InvalidManifestInput',
    'InvalidScratchPath',
    'SigningPrerequisitesUnavailable',
    'SigningFailed',
    'ArchiveWriteFailure',
    'PasskitConfig',
    'load_config',
    'config_from_dict',
    'ModelRepository',
    'PassAssembler',
    'PackageResult',
]
