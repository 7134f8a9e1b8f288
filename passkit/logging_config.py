"""
Logging Configuration for the Pass Package Assembler.

Provides centralized logging configuration with a verbose toggle,
per-feature levels and text or JSON formatting.

Usage:
    from passkit.logging_config import setup_logging, get_logger

    # Setup at process startup
    setup_logging(verbose=True)

    # Feature-aware logger with pipeline helpers
    logger = get_logger('passkit.pipeline')
    logger.pipeline_start("assemble", package_type="event")
"""

import os
import sys
import json
import logging
import threading
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Dict, Any, Set
from dataclasses import dataclass, field


# =============================================================================
# LOGGING LEVELS AND FEATURES
# =============================================================================

TRACE = 5
VERBOSE = 15


class FeatureArea(Enum):
    """Feature areas for targeted logging."""
    CORE = auto()       # Pipeline orchestration
    MODELS = auto()     # Pass model lookup
    ASSEMBLY = auto()   # Enumeration, hashing, manifest, scratch
    SIGNING = auto()    # Signature backends
    ARCHIVE = auto()    # Archive writing
    API = auto()        # HTTP transport
    CONFIG = auto()     # Configuration loading/validation
    HEALTH = auto()     # Health checks


logging.addLevelName(TRACE, 'TRACE')
logging.addLevelName(VERBOSE, 'VERBOSE')


@dataclass
class LoggingState:
    """Thread-safe logging configuration state."""
    verbose: bool = False
    trace: bool = False
    log_file: Optional[str] = None
    json_format: bool = False
    feature_levels: Dict[FeatureArea, int] = field(default_factory=dict)
    initialized: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock)


_state = LoggingState()


_FEATURE_MAP = {
    'models': FeatureArea.MODELS,
    'assembly': FeatureArea.ASSEMBLY,
    'signing': FeatureArea.SIGNING,
    'archive': FeatureArea.ARCHIVE,
    'api': FeatureArea.API,
    'server': FeatureArea.API,
    'config': FeatureArea.CONFIG,
    'health': FeatureArea.HEALTH,
}


def feature_for(logger_name: str) -> FeatureArea:
    """Map a dotted logger name to its feature area."""
    for part in reversed(logger_name.lower().split('.')):
        if part in _FEATURE_MAP:
            return _FEATURE_MAP[part]
    return FeatureArea.CORE


# =============================================================================
# CUSTOM FORMATTER
# =============================================================================

class PasskitFormatter(logging.Formatter):
    """Formatter with color support and structured output."""

    COLORS = {
        'TRACE': '\033[90m',      # Gray
        'DEBUG': '\033[36m',      # Cyan
        'VERBOSE': '\033[94m',    # Light blue
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stderr.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            level_str = f"{color}{level_name:8}{self.COLORS['RESET']}"
        else:
            level_str = f"{level_name:8}"

        feature_str = f"[{feature_for(record.name).name.lower()}]"
        msg = record.getMessage()

        extra_str = ""
        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            extra_str = " | " + ", ".join(f"{k}={v}" for k, v in extra_data.items())

        text = f"{timestamp} {level_str} {feature_str:12} {msg}{extra_str}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text

    def _format_json(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'feature': feature_for(record.name).name.lower(),
        }

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            data['extra'] = extra_data

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)


class FeatureFilter(logging.Filter):
    """Drops records below the level configured for their feature area."""

    def filter(self, record: logging.LogRecord) -> bool:
        level = _state.feature_levels.get(feature_for(record.name))
        return level is None or record.levelno >= level


# =============================================================================
# CUSTOM LOGGER CLASS
# =============================================================================

class PasskitLogger(logging.Logger):
    """Logger with extra levels and pipeline helpers."""

    def trace(self, msg: str, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)

    def verbose(self, msg: str, *args, **kwargs):
        if self.isEnabledFor(VERBOSE):
            self._log(VERBOSE, msg, args, **kwargs)

    def pipeline_start(self, pipeline_name: str, **data):
        self.info(f"Pipeline START: {pipeline_name}", extra={'extra_data': data})

    def pipeline_end(self, pipeline_name: str, success: bool, **data):
        status = "SUCCESS" if success else "FAILED"
        level = logging.INFO if success else logging.ERROR
        self.log(level, f"Pipeline END: {pipeline_name} - {status}",
                 extra={'extra_data': data})

    def pipeline_step(self, step_name: str, **data):
        self.verbose(f"  Step: {step_name}", extra={'extra_data': data})


logging.setLoggerClass(PasskitLogger)


# =============================================================================
# SETUP AND CONFIGURATION
# =============================================================================

def setup_logging(
    verbose: bool = False,
    trace: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
    quiet_features: Optional[Set[FeatureArea]] = None,
) -> None:
    """
    Initialize the logging system.

    Args:
        verbose: Enable verbose logging (VERBOSE level)
        trace: Enable trace logging (TRACE level, implies verbose)
        log_file: Optional file path for log output
        console: Enable console output
        json_format: Use JSON format for logs
        quiet_features: Features restricted to WARNING and above
    """
    with _state._lock:
        _state.verbose = verbose or trace
        _state.trace = trace
        _state.log_file = log_file
        _state.json_format = json_format

        if trace:
            base_level = TRACE
        elif verbose:
            base_level = VERBOSE
        else:
            base_level = logging.INFO

        root = logging.getLogger()
        root.setLevel(base_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        handlers = []
        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(PasskitFormatter(use_colors=True, json_format=json_format))
            handlers.append(console_handler)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(PasskitFormatter(use_colors=False, json_format=json_format))
            handlers.append(file_handler)

        for handler in handlers:
            handler.setLevel(base_level)
            handler.addFilter(FeatureFilter())
            root.addHandler(handler)

        quiet = quiet_features or set()
        for feature in FeatureArea:
            _state.feature_levels[feature] = logging.WARNING if feature in quiet else base_level

        _state.initialized = True


def get_logger(name: str) -> PasskitLogger:
    """Get a feature-aware logger."""
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Toggle verbose mode at runtime."""
    with _state._lock:
        _state.verbose = enabled
        level = VERBOSE if enabled else logging.INFO
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)
        for feature, current in _state.feature_levels.items():
            if current != logging.WARNING:
                _state.feature_levels[feature] = level


def get_logging_state() -> Dict[str, Any]:
    """Get current logging configuration state."""
    with _state._lock:
        return {
            'verbose': _state.verbose,
            'trace': _state.trace,
            'log_file': _state.log_file,
            'json_format': _state.json_format,
            'feature_levels': {f.name: lvl for f, lvl in _state.feature_levels.items()},
            'initialized': _state.initialized,
        }


def env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def configure_from_environment(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging from PASSKIT_* environment variables.

    Arguments are merged with the environment: a flag set in either place
    is enabled, and PASSKIT_LOG_FILE wins over log_file.
    """
    quiet = set()
    for feature_name in os.environ.get('PASSKIT_LOG_QUIET_FEATURES', '').split(','):
        feature_name = feature_name.strip().upper()
        if feature_name in FeatureArea.__members__:
            quiet.add(FeatureArea[feature_name])

    setup_logging(
        verbose=verbose or env_flag('PASSKIT_VERBOSE'),
        trace=env_flag('PASSKIT_TRACE'),
        log_file=os.environ.get('PASSKIT_LOG_FILE') or log_file,
        console=not env_flag('PASSKIT_LOG_NO_CONSOLE'),
        json_format=json_format or env_flag('PASSKIT_LOG_JSON'),
        quiet_features=quiet,
    )
