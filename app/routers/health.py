# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
#
# The database endpoints always answer 200; an unhealthy database is reported
# in the body (is_healthy=false, last_error) rather than as a failed request.
# =============================================================================

from datetime import datetime, timezone

from fastapi import APIRouter, Query
from pydantic import BaseModel

from app.dependencies import DbManagerDep, SettingsDep
from core.models.health import ConnectionMetrics, HealthStatus

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Individual service checks."""
    database: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str


class LivenessResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep):
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        environment=settings.ENVIRONMENT,
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(manager: DbManagerDep):
    """
    Readiness check endpoint.

    Uses the cached database status so the probe never blocks on the database.
    """
    status = manager.fast_health_check()
    database = "healthy" if status.is_healthy else f"unhealthy: {status.last_error[:50]}"

    return ReadinessResponse(
        status="ready" if status.is_healthy else "degraded",
        checks=ChecksResponse(database=database),
        timestamp=_now(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """
    Liveness check endpoint.

    Returns whether the service process is alive.
    Used by Kubernetes/Docker for restart decisions.
    """
    return LivenessResponse(
        status="alive",
        timestamp=_now(),
    )


@router.get("/health/database", response_model=HealthStatus)
def database_health(
    manager: DbManagerDep,
    fast: bool = Query(default=False, description="Serve the cached status instead of probing"),
):
    """
    Database health.

    Probes the database (bounded by DB_HEALTH_TIMEOUT) unless fast=true.
    """
    if fast:
        return manager.fast_health_check()
    return manager.health_check()


@router.get("/health/metrics", response_model=ConnectionMetrics)
async def database_metrics(manager: DbManagerDep):
    """Latest connection pool statistics."""
    return manager.get_metrics()
