"""HTTP transport and health endpoints."""

from .health import ComponentHealth, HealthChecker, HealthCheckResult, HealthStatus
from .server import PassRequestHandler, PassServer, main

__all__ = [
    'ComponentHealth',
    'HealthChecker',
    'HealthCheckResult',
    'HealthStatus',
    'PassRequestHandler',
    'PassServer',
    'main',
]
