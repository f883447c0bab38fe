# =============================================================================
# core/models/health.py - Database Health and Pool Metrics Schemas
# =============================================================================
# Snapshots produced by the ConnectionManager:
# - HealthStatus: result of the latest liveness probe
# - ConnectionMetrics: latest pool statistics
#
# Both are returned as copies, so callers can hold on to them freely.
# Durations are serialized as float seconds.
# =============================================================================

from datetime import datetime, timedelta

from pydantic import BaseModel, Field, field_serializer


class HealthStatus(BaseModel):
    """
    Health of the database connection.

    Example:
        {
            "is_healthy": true,
            "last_check": "2024-01-15T10:30:00Z",
            "last_error": "",
            "response_time": 0.0021,
            "retry_count": 0
        }
    """

    is_healthy: bool = Field(default=False, description="Result of the latest probe")
    last_check: datetime | None = Field(default=None, description="When the latest probe finished")
    last_error: str = Field(default="", description="Error text of the latest failed probe")
    response_time: timedelta = Field(
        default=timedelta(0),
        description="Duration of the latest probe (seconds)"
    )
    retry_count: int = Field(default=0, ge=0, description="Failed attempts of the current connect sequence")

    @field_serializer("response_time")
    def _serialize_response_time(self, value: timedelta) -> float:
        return value.total_seconds()


class ConnectionMetrics(BaseModel):
    """Point-in-time statistics of the connection pool."""

    total_connections: int = 0
    open_connections: int = 0
    idle_connections: int = 0
    in_use_connections: int = 0
    wait_count: int = Field(default=0, description="Acquisitions that found the pool saturated")
    wait_duration: timedelta = Field(
        default=timedelta(0),
        description="Total time spent waiting for a connection (seconds)"
    )
    max_open_connections: int = 0
    max_idle_connections: int = 0

    @field_serializer("wait_duration")
    def _serialize_wait_duration(self, value: timedelta) -> float:
        return value.total_seconds()
