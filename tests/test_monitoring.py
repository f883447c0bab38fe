# =============================================================================
# tests/test_monitoring.py - Error Reporting Tests
# =============================================================================

import logging
from unittest.mock import MagicMock

from lib.monitoring import LoggingErrorReporter, Observability


class TestObservability:

    def test_report_merges_tags(self):
        reporter = MagicMock()
        observability = Observability(error_reporter=reporter, default_tags={"environment": "staging"})
        error = ConnectionRefusedError("refused")

        observability.report(error, operation="database_connection", attempt=2, max_attempts=3)

        reporter.capture_exception.assert_called_once_with(
            error,
            {"environment": "staging", "operation": "database_connection", "attempt": "2"},
            {"attempt": 2, "max_attempts": 3},
        )

    def test_report_without_reporter_is_noop(self):
        Observability().report(RuntimeError("ignored"), operation="anything")

    def test_failing_reporter_is_swallowed(self, caplog):
        reporter = MagicMock()
        reporter.capture_exception.side_effect = RuntimeError("backend down")
        observability = Observability(error_reporter=reporter)

        with caplog.at_level(logging.WARNING, logger="lib.monitoring"):
            observability.report(ValueError("original"), operation="close_database")

        assert "backend down" in caplog.text

    def test_from_settings(self, settings):
        observability = Observability.from_settings(settings)

        assert isinstance(observability.error_reporter, LoggingErrorReporter)
        assert observability.default_tags == {"environment": settings.ENVIRONMENT}
        assert observability.logger.name == "starter_api"


class TestLoggingErrorReporter:

    def test_logs_exception(self, caplog):
        reporter = LoggingErrorReporter(name="test_reporter")

        with caplog.at_level(logging.ERROR, logger="test_reporter"):
            reporter.capture_exception(ValueError("bad value"), {"operation": "x"}, {})

        assert "ValueError: bad value" in caplog.text
        assert "'operation': 'x'" in caplog.text
