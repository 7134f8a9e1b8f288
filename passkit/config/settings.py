"""
Configuration loading for the Pass Package Assembler.

Configuration is read once, frozen, and passed explicitly to every
component. JSON and YAML files are supported; the layout of the original
service's config.json is accepted as is:

    {
      "models": {"dir": "./models"},
      "output": {"dir": "./output"},
      "certificates": {
        "dir": "./certificates",
        "files": {"certificate": "cert.pem", "key": "key.pem", "wwdr_pem": "wwdr.pem"},
        "credentials": {"dev_pem_key": "passphrase"}
      }
    }

Optional sections: signing, assembly, server, logging. Relative paths are
resolved against the directory holding the configuration file.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..constants import BufferSizes, Defaults, Reserved, RuntimeConfig, ENV_PREFIX
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV = f"{ENV_PREFIX}CONFIG"
PASSPHRASE_ENV = f"{ENV_PREFIX}KEY_PASSPHRASE"
DEFAULT_CONFIG_NAMES = ("config.json", "config.yaml", "config.yml")

SIGNING_BACKENDS = ("openssl", "pkcs7", "ed25519")


class ConfigFormat(Enum):
    """Supported configuration file formats."""
    JSON = "json"
    YAML = "yaml"
    AUTO = "auto"


@dataclass(frozen=True)
class CertificateConfig:
    """Signing identity: chain certificate, signer certificate, key, passphrase."""
    dir: Path
    certificate: str = "certificate.pem"
    key: str = "key.pem"
    wwdr: str = "wwdr.pem"
    passphrase: str = field(default="", repr=False)

    @property
    def certificate_path(self) -> Path:
        return self.dir / self.certificate

    @property
    def key_path(self) -> Path:
        return self.dir / self.key

    @property
    def wwdr_path(self) -> Path:
        return self.dir / self.wwdr


@dataclass(frozen=True)
class SigningConfig:
    backend: str = Defaults.SIGNING_BACKEND
    openssl_binary: str = Defaults.OPENSSL_BINARY
    timeout: Optional[float] = None
    # Legacy behavior: any diagnostic output fails signing regardless of exit status
    stderr_is_fatal: bool = False


@dataclass(frozen=True)
class AssemblyConfig:
    max_concurrent_reads: int = Defaults.MAX_CONCURRENT_READS
    chunk_size: int = BufferSizes.FILE_CHUNK
    scratch_prefix: str = Defaults.SCRATCH_PREFIX
    scratch_root: Optional[Path] = None


@dataclass(frozen=True)
class ServerConfig:
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass(frozen=True)
class LoggingSettings:
    verbose: bool = False
    json_format: bool = False
    log_file: Optional[str] = None


@dataclass(frozen=True)
class PasskitConfig:
    """Immutable configuration shared by all request handlers."""
    models_dir: Path
    output_dir: Path
    certificates: CertificateConfig
    required_entry: str = Reserved.REQUIRED_ENTRY
    supported_types: str = Defaults.SUPPORTED_TYPES
    signing: SigningConfig = field(default_factory=SigningConfig)
    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: Optional[Path] = None

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Plain dictionary view, passphrase redacted by default."""
        data = asdict(self)
        if redact and data['certificates'].get('passphrase'):
            data['certificates']['passphrase'] = '***'
        return _stringify_paths(data)


def _stringify_paths(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _stringify_paths(v) for k, v in value.items()}
    if isinstance(value, Path):
        return str(value)
    return value


# =============================================================================
# LOADING
# =============================================================================

def detect_format(filepath: Path) -> ConfigFormat:
    """Detect configuration format from file extension, then content."""
    ext = filepath.suffix.lower()
    if ext == '.json':
        return ConfigFormat.JSON
    if ext in {'.yaml', '.yml'}:
        return ConfigFormat.YAML
    try:
        content = filepath.read_text(encoding='utf-8')
    except OSError:
        return ConfigFormat.JSON
    return ConfigFormat.JSON if content.lstrip().startswith('{') else ConfigFormat.YAML


def read_config_file(
    filepath: Union[str, Path],
    format: ConfigFormat = ConfigFormat.AUTO,
) -> Dict[str, Any]:
    """Parse a configuration file into a dictionary."""
    filepath = Path(filepath)
    if not filepath.is_file():
        raise ConfigurationError(f"Config file not found: {filepath}", path=str(filepath))

    if format == ConfigFormat.AUTO:
        format = detect_format(filepath)

    try:
        content = filepath.read_text(encoding='utf-8')
        if format == ConfigFormat.JSON:
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to parse configuration {filepath}: {e}",
                                 path=str(filepath)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {filepath}",
                                 path=str(filepath))
    return data


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping")
    return value


def _resolve(base_dir: Path, value: Union[str, Path]) -> Path:
    path = Path(os.path.expanduser(str(value)))
    return path if path.is_absolute() else (base_dir / path)


def config_from_dict(data: Dict[str, Any], base_dir: Optional[Path] = None,
                     source: Optional[Path] = None) -> PasskitConfig:
    """Build a PasskitConfig from a parsed configuration mapping."""
    base_dir = Path(base_dir) if base_dir else Path.cwd()

    models = _section(data, 'models')
    output = _section(data, 'output')
    certs = _section(data, 'certificates')
    files = _section(certs, 'files')
    credentials = _section(certs, 'credentials')
    signing = _section(data, 'signing')
    assembly = _section(data, 'assembly')
    server = _section(data, 'server')
    log = _section(data, 'logging')

    if 'dir' not in models:
        raise ConfigurationError("models.dir is required")
    if 'dir' not in certs:
        raise ConfigurationError("certificates.dir is required")

    passphrase = os.environ.get(PASSPHRASE_ENV)
    if passphrase is None:
        passphrase = str(credentials.get('dev_pem_key', credentials.get('passphrase', '')))

    supported_types = str(models.get('supported_types', Defaults.SUPPORTED_TYPES))
    try:
        re.compile(supported_types)
    except re.error as e:
        raise ConfigurationError(f"models.supported_types is not a valid pattern: {e}") from e

    backend = str(signing.get('backend', Defaults.SIGNING_BACKEND)).lower()
    if backend not in SIGNING_BACKENDS:
        raise ConfigurationError(
            f"Unknown signing backend '{backend}'. Valid: {', '.join(SIGNING_BACKENDS)}"
        )

    timeout = signing.get('timeout', RuntimeConfig.get_signer_timeout())
    scratch_root = assembly.get('scratch_root')

    try:
        return PasskitConfig(
            models_dir=_resolve(base_dir, models['dir']),
            output_dir=_resolve(base_dir, output.get('dir', 'output')),
            required_entry=str(models.get('required_entry', Reserved.REQUIRED_ENTRY)),
            supported_types=supported_types,
            certificates=CertificateConfig(
                dir=_resolve(base_dir, certs['dir']),
                certificate=str(files.get('certificate', 'certificate.pem')),
                key=str(files.get('key', 'key.pem')),
                wwdr=str(files.get('wwdr_pem', files.get('wwdr', 'wwdr.pem'))),
                passphrase=passphrase,
            ),
            signing=SigningConfig(
                backend=backend,
                openssl_binary=str(signing.get('openssl_binary', Defaults.OPENSSL_BINARY)),
                timeout=float(timeout) if timeout is not None else None,
                stderr_is_fatal=bool(signing.get('stderr_is_fatal', False)),
            ),
            assembly=AssemblyConfig(
                max_concurrent_reads=max(1, int(assembly.get(
                    'max_concurrent_reads', RuntimeConfig.get_max_concurrent_reads()))),
                chunk_size=int(assembly.get('chunk_size', RuntimeConfig.get_file_chunk())),
                scratch_prefix=str(assembly.get('scratch_prefix', Defaults.SCRATCH_PREFIX)),
                scratch_root=_resolve(base_dir, scratch_root) if scratch_root else None,
            ),
            server=ServerConfig(
                host=str(server.get('host', Defaults.SERVER_HOST)),
                port=int(server.get('port', Defaults.SERVER_PORT)),
            ),
            logging=LoggingSettings(
                verbose=bool(log.get('verbose', False)),
                json_format=bool(log.get('json', False)),
                log_file=log.get('file'),
            ),
            source=source,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e


def find_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Explicit path, then $PASSKIT_CONFIG, then config.{json,yaml,yml} in cwd."""
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    for name in DEFAULT_CONFIG_NAMES:
        candidate = Path.cwd() / name
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        f"No configuration file given. Pass --config or set {CONFIG_ENV}."
    )


def load_config(path: Optional[Union[str, Path]] = None) -> PasskitConfig:
    """Locate, read and freeze the configuration."""
    config_path = find_config_path(path).resolve()
    data = read_config_file(config_path)
    config = config_from_dict(data, base_dir=config_path.parent, source=config_path)
    logger.info(f"Loaded configuration from {config_path} (signing backend={config.signing.backend})")
    return config
