"""
Health monitoring for the pool and the ledger connection
"""

import time
import asyncio
from typing import Dict, Any, Optional
from dataclasses import dataclass
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

from log_utils import get_logger

logger = get_logger(__name__)

# Prometheus metrics
uptime_seconds = Gauge('txreflex_uptime_seconds', 'Service uptime in seconds')
pool_size = Gauge('txreflex_pool_size', 'Pre-signed transactions held by the pool')
pool_available = Gauge('txreflex_pool_available', 'Pre-signed transactions not yet handed out')
pool_refills = Counter('txreflex_pool_refills', 'Refill batches by outcome', ['outcome'])
health_check_status = Gauge('txreflex_health_check_status', 'Health check status by component', ['component'])
reaction_time = Histogram(
    'txreflex_reaction_milliseconds', 'Measured player reaction time',
    buckets=(100, 150, 200, 250, 300, 400, 500, 750, 1000, 2000)
)
broadcast_latency = Histogram(
    'txreflex_broadcast_milliseconds', 'Synchronous broadcast latency from take to confirmation',
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000)
)
rounds_total = Counter('txreflex_rounds_total', 'Recorded rounds by outcome', ['outcome'])


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

@dataclass
class ComponentHealth:
    status: HealthStatus
    message: str
    last_check: float
    details: Optional[Dict[str, Any]] = None

_STATUS_VALUE = {
    HealthStatus.HEALTHY: 1.0,
    HealthStatus.DEGRADED: 0.5,
    HealthStatus.UNHEALTHY: 0.0,
}


class HealthMonitor:
    """System health monitoring"""

    def __init__(self, pool, ledger):
        self.pool = pool
        self.ledger = ledger
        self.components: Dict[str, ComponentHealth] = {}
        self.start_time = time.time()

    def update_pool_metrics(self):
        pool_size.set(self.pool.size)
        pool_available.set(self.pool.available)

    async def check_pool_health(self) -> ComponentHealth:
        """Ready with entries to spare is healthy; ready but empty is degraded"""
        stats = self.pool.stats()
        self.update_pool_metrics()

        if not self.pool.is_ready:
            status = HealthStatus.UNHEALTHY
            message = f"Pool not ready ({stats['state']})"
            if stats["last_error"]:
                message += f": {stats['last_error']}"
        elif self.pool.available == 0:
            status = HealthStatus.DEGRADED
            message = "Pool has no pre-signed transactions left"
        else:
            status = HealthStatus.HEALTHY
            message = f"{self.pool.available} pre-signed transactions available"

        return ComponentHealth(status=status, message=message, last_check=time.time(), details=stats)

    async def check_ledger_health(self) -> ComponentHealth:
        start_time = time.time()
        connected = await self.ledger.is_connected()
        duration = time.time() - start_time

        if not connected:
            return ComponentHealth(
                status=HealthStatus.UNHEALTHY,
                message="Ledger RPC unreachable",
                last_check=time.time(),
            )
        if duration > 1.0:
            return ComponentHealth(
                status=HealthStatus.DEGRADED,
                message=f"Ledger RPC slow: {duration:.2f}s",
                last_check=time.time(),
                details={"response_time": duration},
            )
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Ledger RPC reachable",
            last_check=time.time(),
            details={"response_time": duration},
        )

    async def run_health_checks(self) -> Dict[str, ComponentHealth]:
        """Run all health checks"""
        uptime_seconds.set(time.time() - self.start_time)

        checks = {
            "pool": self.check_pool_health(),
            "ledger": self.check_ledger_health(),
        }
        results = await asyncio.gather(*checks.values(), return_exceptions=True)

        health_status = {}
        for component, result in zip(checks.keys(), results):
            if isinstance(result, Exception):
                logger.error(f"{component} health check failed: {result}")
                result = ComponentHealth(
                    status=HealthStatus.UNHEALTHY,
                    message=f"Health check failed: {str(result)}",
                    last_check=time.time()
                )
            health_check_status.labels(component=component).set(_STATUS_VALUE[result.status])
            health_status[component] = result

        self.components = health_status
        return health_status

    def get_overall_health(self) -> HealthStatus:
        if not self.components:
            return HealthStatus.UNHEALTHY

        statuses = [comp.status for comp in self.components.values()]

        if any(status == HealthStatus.UNHEALTHY for status in statuses):
            return HealthStatus.UNHEALTHY
        elif any(status == HealthStatus.DEGRADED for status in statuses):
            return HealthStatus.DEGRADED
        else:
            return HealthStatus.HEALTHY

    def get_health_summary(self) -> Dict[str, Any]:
        return {
            "status": self.get_overall_health().value,
            "uptime": time.time() - self.start_time,
            "timestamp": time.time(),
            "components": {
                name: {
                    "status": comp.status.value,
                    "message": comp.message,
                    "last_check": comp.last_check,
                    "details": comp.details
                }
                for name, comp in self.components.items()
            }
        }

    def generate_metrics(self) -> tuple[bytes, str]:
        """Generate Prometheus metrics"""
        self.update_pool_metrics()
        uptime_seconds.set(time.time() - self.start_time)
        return generate_latest(), CONTENT_TYPE_LATEST
