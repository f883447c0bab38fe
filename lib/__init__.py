# =============================================================================
# lib/ - Infrastructure Modules
# =============================================================================
# This package contains infrastructure shared by the application:
# - database.py: ConnectionManager (pooled engine, health checks, pool metrics)
# - monitoring.py: Logging and error-reporting context
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.database import ConnectionManager
from lib.monitoring import ErrorReporter, LoggingErrorReporter, Observability

__all__ = [
    "ConnectionManager",
    "ErrorReporter",
    "LoggingErrorReporter",
    "Observability",
]
