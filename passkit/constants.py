"""
Centralized Constants Module for the Pass Package Assembler.

This module consolidates the fixed names, limits and defaults used by the
assembly pipeline so they are easy to audit in one place.

Usage:
    from passkit.constants import Reserved, BufferSizes, Timeouts

    with open(path, 'rb') as f:
        chunk = f.read(BufferSizes.FILE_CHUNK)
"""

import os
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')

ENV_PREFIX = "PASSKIT_"


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    min_value: Optional[T] = None,
    max_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Args:
        env_var: Environment variable name (will be prefixed with PASSKIT_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        min_value: Optional minimum allowed value
        max_value: Optional maximum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None:
        return default

    try:
        converted = converter(env_value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default

    if min_value is not None and converted < min_value:
        logger.warning(f"{full_env_var}={env_value} below minimum {min_value}, using default")
        return default
    if max_value is not None and converted > max_value:
        logger.warning(f"{full_env_var}={env_value} above maximum {max_value}, using default")
        return default

    logger.info(f"Using {full_env_var}={converted} (override)")
    return converted


# =============================================================================
# RESERVED NAMES
# =============================================================================

@dataclass(frozen=True)
class Reserved:
    """
    Entry names the pipeline generates itself.

    Source files carrying one of these names are never hashed or packaged
    as content.
    """
    MANIFEST: str = "manifest.json"
    SIGNATURE: str = "signature"
    REQUIRED_ENTRY: str = "pass.json"
    HIDDEN_PREFIX: str = "."

    @classmethod
    def generated(cls) -> Tuple[str, str]:
        return (cls.MANIFEST, cls.SIGNATURE)


# =============================================================================
# TIMEOUT CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Timeouts:
    """Centralized timeout values in seconds."""
    SIGNER_DEFAULT: float = 60.0        # External signer process
    SIGNER_KILL_GRACE: float = 5.0      # Wait after kill() before giving up
    THREAD_JOIN_DEFAULT: float = 5.0    # Server thread shutdown


# =============================================================================
# BUFFER SIZE CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class BufferSizes:
    """Centralized buffer and chunk sizes in bytes."""
    FILE_CHUNK: int = 65536             # Hash and archive read chunk (64KB)
    HTTP_CHUNK: int = 65536             # Response streaming chunk


class Permissions(IntEnum):
    """File permission modes used by the pipeline."""
    SECURE_FILE = 0o600                 # rw------- (keys)
    STANDARD_FILE = 0o644               # rw-r--r-- (published archives)
    GROUP_OTHER_MASK = 0o077            # any group/other access bits


# =============================================================================
# MEDIA TYPES
# =============================================================================

@dataclass(frozen=True)
class MediaTypes:
    PKPASS: str = "application/vnd.apple.pkpass"
    JSON: str = "application/json"
    TEXT: str = "text/plain; charset=utf-8"


# =============================================================================
# DEFAULTS
# =============================================================================

@dataclass(frozen=True)
class Defaults:
    """
    Defaults used when the configuration file leaves a value out.

    The archive extension and the scratch prefix are fixed by the pkpass
    format and by operational convention respectively.
    """
    SUPPORTED_TYPES: str = r"boarding|event|coupon|generic|store"
    MODEL_SUFFIX: str = ".pass"
    ARCHIVE_SUFFIX: str = ".pkpass"
    SCRATCH_PREFIX: str = "passkit-"
    MAX_CONCURRENT_READS: int = 8
    SIGNING_BACKEND: str = "openssl"
    OPENSSL_BINARY: str = "openssl"
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8080
    # Zip entries carry this timestamp so identical inputs yield identical archives
    ZIP_TIMESTAMP: Tuple[int, int, int, int, int, int] = (1980, 1, 1, 0, 0, 0)


# Name of the child-process environment variable carrying the key passphrase
SIGNER_PASSPHRASE_ENV = "PASSKIT_SIGNER_PASSPHRASE"


class RuntimeConfig:
    """
    Runtime values that can be overridden via environment variables.
    """
    @staticmethod
    def get_max_concurrent_reads() -> int:
        return _env_override("MAX_CONCURRENT_READS", Defaults.MAX_CONCURRENT_READS,
                             int, min_value=1, max_value=256)

    @staticmethod
    def get_signer_timeout() -> float:
        return _env_override("SIGNER_TIMEOUT", Timeouts.SIGNER_DEFAULT,
                             float, min_value=0.1)

    @staticmethod
    def get_file_chunk() -> int:
        return _env_override("FILE_CHUNK", BufferSizes.FILE_CHUNK,
                             int, min_value=512)


__all__ = [
    'Reserved',
    'Timeouts',
    'BufferSizes',
    'Permissions',
    'MediaTypes',
    'Defaults',
    'RuntimeConfig',
    'SIGNER_PASSPHRASE_ENV',
    'ENV_PREFIX',
]
