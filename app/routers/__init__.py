# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health, readiness and database pool endpoints
# - users.py: User CRUD endpoints
# - companies.py: Company CRUD endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import companies
from . import health
from . import users

__all__ = [
    "companies",
    "health",
    "users",
]
