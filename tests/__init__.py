# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Starter API:
# - test_database.py: ConnectionManager retry, health, metrics and shutdown
# - test_health_routes.py: Health and pool metrics endpoints, startup
# - test_users.py / test_companies.py: CRUD endpoints and services
# - test_auth.py: Bearer token verification and roles
# - test_config.py / test_exceptions.py / test_monitoring.py: Ambient layers
#
# Run tests with: pytest
# =============================================================================
