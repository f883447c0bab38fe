# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - health.py: Database health and pool metrics snapshots
# - company.py: Company CRUD schemas
# - user.py: User CRUD schemas
# - common.py: Pagination wrapper
#
# These models define the "contract" between API and clients.
# =============================================================================

from .common import Page
from .company import CompanyCreate, CompanyResponse, CompanySummary, CompanyUpdate
from .health import ConnectionMetrics, HealthStatus
from .user import UserCreate, UserResponse, UserUpdate

__all__ = [
    # Health
    "HealthStatus",
    "ConnectionMetrics",
    # Companies
    "CompanyCreate",
    "CompanyUpdate",
    "CompanyResponse",
    "CompanySummary",
    # Users
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    # Common
    "Page",
]
