# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - models/: Pydantic schemas for data validation
# - tables.py: SQLAlchemy ORM tables
# - services/: User and company operations on an ORM session
#
# Code in this package should NOT touch requests, responses or routers.
# This keeps the logic testable and reusable.
# =============================================================================
