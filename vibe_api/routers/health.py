# vibe_api/routers/health.py
# Health check endpoints for monitoring and load balancers
# Provides liveness and readiness probes

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from vibe_api.container import AppServices
from vibe_api.dependencies import get_services
from vibe_api.middleware.circuit_breaker import with_timeout

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

PING_TIMEOUT_SECONDS = 2.0


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: float
    version: str = "1.0.0"
    checks: Dict[str, Dict[str, Any]] = {}


class ComponentHealth(BaseModel):
    """Individual component health."""
    status: str
    latency_ms: float = 0.0
    message: str = ""


async def check_component(name: str, ping: Callable[[], Awaitable[Any]]) -> ComponentHealth:
    start = time.time()
    try:
        await with_timeout(PING_TIMEOUT_SECONDS)(ping)()
    except asyncio.TimeoutError:
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=f"{name} ping timeout",
        )
    except Exception as e:
        logger.error(f"{name} health check failed: {e}")
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=f"{name} error: {type(e).__name__}",
        )

    latency_ms = (time.time() - start) * 1000
    if latency_ms > PING_TIMEOUT_SECONDS * 500:
        return ComponentHealth(status="degraded", latency_ms=latency_ms, message=f"{name} slow to answer")
    return ComponentHealth(status="healthy", latency_ms=latency_ms, message="ok")


@router.get("/health", response_model=HealthStatus)
async def health_check(response: Response, services: AppServices = Depends(get_services)):
    """
    Full health check: pings every backing store.
    Redis or MongoDB down means unhealthy (503); a slow answer means degraded.
    """
    results = await asyncio.gather(*(check_component(n, p) for n, p in services.health_checks))
    checks = {
        name: {"status": r.status, "latency_ms": round(r.latency_ms, 2), "message": r.message}
        for (name, _), r in zip(services.health_checks, results)
    }

    statuses = [c["status"] for c in checks.values()]
    if "unhealthy" in statuses:
        overall_status = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif "degraded" in statuses:
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return HealthStatus(status=overall_status, timestamp=time.time(), checks=checks)


@router.get("/health/live")
async def liveness_probe():
    """Process is up. Does NOT check external dependencies."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(response: Response, services: AppServices = Depends(get_services)):
    """Ready only when the session store answers."""
    for name, ping in services.health_checks:
        if name != "redis":
            continue
        result = await check_component(name, ping)
        if result.status == "unhealthy":
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {"status": "not_ready", "reason": result.message}
    return {"status": "ready"}
