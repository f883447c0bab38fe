# =============================================================================
# lib/monitoring.py - Logging and Error Reporting Context
# =============================================================================
# Bundles the logger and an optional error reporter into one object that is
# built at startup and handed to the components that need it.
#
# Usage:
#   observability = Observability.from_settings(settings)
#   observability.report(exc, operation="database_connection", attempt=2)
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ErrorReporter(Protocol):
    """Anything that can forward an exception to an error-tracking backend."""

    def capture_exception(
        self,
        exc: BaseException,
        tags: dict[str, str],
        extras: dict[str, Any],
    ) -> None:
        ...


class LoggingErrorReporter:
    """
    Error reporter that writes captured exceptions to a dedicated logger.

    Used when no error-tracking backend is configured.
    """

    def __init__(self, name: str = "error_reporter"):
        self._logger = logging.getLogger(name)

    def capture_exception(
        self,
        exc: BaseException,
        tags: dict[str, str],
        extras: dict[str, Any],
    ) -> None:
        self._logger.error(
            f"Captured {type(exc).__name__}: {exc} tags={tags} extras={extras}"
        )


@dataclass
class Observability:
    """
    Logging and error-reporting handles for one component tree.

    Attributes:
        logger: Logger the owning component writes to
        error_reporter: Optional backend for captured exceptions
        default_tags: Tags attached to every report (environment, service, ...)
    """

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("app"))
    error_reporter: ErrorReporter | None = None
    default_tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings) -> "Observability":
        """Build the context used by the running application."""
        return cls(
            logger=logging.getLogger(settings.APP_NAME.lower().replace(" ", "_")),
            error_reporter=LoggingErrorReporter(),
            default_tags={"environment": settings.ENVIRONMENT},
        )

    def report(self, exc: BaseException, operation: str, **extras: Any) -> None:
        """
        Forward an exception to the error reporter with contextual tags.

        Never raises: a failing reporter is logged and ignored.
        """
        if self.error_reporter is None:
            return

        tags = {**self.default_tags, "operation": operation}
        if "attempt" in extras:
            tags["attempt"] = str(extras["attempt"])

        try:
            self.error_reporter.capture_exception(exc, tags, extras)
        except Exception as e:
            logger.warning(f"Error reporter failed for {operation}: {e}")
