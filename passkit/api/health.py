"""
Health checks for the pass server.

Checks:
- signing: certificate and key material readable
- models: models directory present
- disk: free space where archives are published

Endpoints (served by passkit.api.server):
- /health        - full status
- /health/live   - liveness probe
- /health/ready  - readiness probe
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import psutil

from ..config import PasskitConfig
from ..errors import SigningPrerequisitesUnavailable
from ..signing import ManifestSigner

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health check status values."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


@dataclass
class ComponentHealth:
    """Health status of a single component."""
    name: str
    status: HealthStatus
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthCheckResult:
    """Complete health check result."""
    status: HealthStatus
    timestamp: str
    uptime_seconds: float
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'timestamp': self.timestamp,
            'uptime_seconds': round(self.uptime_seconds, 3),
            'components': [
                {
                    'name': c.name,
                    'status': c.status.value,
                    'message': c.message,
                    'details': c.details,
                }
                for c in self.components
            ],
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _existing_ancestor(path: Path) -> Path:
    path = path.resolve()
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


class HealthChecker:
    """Runs the registered component checks."""

    DISK_DEGRADED_PERCENT = 85.0
    DISK_UNHEALTHY_PERCENT = 95.0

    def __init__(self, config: PasskitConfig, signer: ManifestSigner):
        self.config = config
        self.signer = signer
        self._start_time = time.time()
        self._checks: Dict[str, Callable[[], ComponentHealth]] = {}
        self._lock = threading.Lock()

        self.register_check("signing", self._check_signing)
        self.register_check("models", self._check_models)
        self.register_check("disk", self._check_disk)

    def register_check(self, name: str, check_fn: Callable[[], ComponentHealth]) -> None:
        with self._lock:
            self._checks[name] = check_fn

    def get_uptime(self) -> float:
        return time.time() - self._start_time

    def _check_signing(self) -> ComponentHealth:
        try:
            self.signer.check_prerequisites()
        except SigningPrerequisitesUnavailable as e:
            return ComponentHealth("signing", HealthStatus.UNHEALTHY, e.message,
                                   {'backend': self.signer.name})
        return ComponentHealth("signing", HealthStatus.HEALTHY, "Key material available",
                               {'backend': self.signer.name})

    def _check_models(self) -> ComponentHealth:
        models_dir = self.config.models_dir
        if not models_dir.is_dir():
            return ComponentHealth("models", HealthStatus.UNHEALTHY,
                                   f"Models directory not found: {models_dir}")
        return ComponentHealth("models", HealthStatus.HEALTHY, "Models directory present")

    def _check_disk(self) -> ComponentHealth:
        target = _existing_ancestor(self.config.output_dir)
        try:
            disk = psutil.disk_usage(str(target))
        except OSError as e:
            return ComponentHealth("disk", HealthStatus.UNKNOWN, str(e))

        if disk.percent > self.DISK_UNHEALTHY_PERCENT:
            status, message = HealthStatus.UNHEALTHY, f"Disk usage critical: {disk.percent}%"
        elif disk.percent > self.DISK_DEGRADED_PERCENT:
            status, message = HealthStatus.DEGRADED, f"Disk usage high: {disk.percent}%"
        else:
            status, message = HealthStatus.HEALTHY, f"Disk usage normal: {disk.percent}%"

        return ComponentHealth("disk", status, message, {
            'path': str(target),
            'free_mb': disk.free / (1024 * 1024),
            'percent': disk.percent,
        })

    def run_checks(self) -> HealthCheckResult:
        components = []
        with self._lock:
            checks = list(self._checks.items())

        for name, check_fn in checks:
            try:
                components.append(check_fn())
            except Exception as e:
                logger.warning(f"Health check '{name}' failed: {e}")
                components.append(ComponentHealth(name, HealthStatus.UNHEALTHY, str(e)))

        if any(c.status == HealthStatus.UNHEALTHY for c in components):
            overall = HealthStatus.UNHEALTHY
        elif any(c.status in (HealthStatus.DEGRADED, HealthStatus.UNKNOWN) for c in components):
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return HealthCheckResult(overall, _now(), self.get_uptime(), components)

    def check_liveness(self) -> Tuple[bool, str]:
        return True, "Process is alive"

    def check_readiness(self) -> Tuple[bool, str]:
        result = self.run_checks()
        is_ready = result.status in (HealthStatus.HEALTHY, HealthStatus.DEGRADED)
        return is_ready, f"Status: {result.status.value}"
