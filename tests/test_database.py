# =============================================================================
# tests/test_database.py - ConnectionManager Tests
# =============================================================================
# This module contains tests for:
# - Connect with fixed-delay retry
# - Full and fast health checks
# - Pool metrics collection
# - Shutdown
#
# Failures are injected with unittest.mock; the live database is a SQLite file.
# =============================================================================

import logging
import threading
import time
from unittest.mock import MagicMock, call, patch

import pytest
from sqlalchemy import create_engine as real_create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.exceptions import DatabaseConnectionError, DatabaseError
from core.tables import Company
from lib.database import ConnectionManager
from lib.monitoring import Observability


def severed(message: str = "server closed the connection unexpectedly") -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception(message))


def wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


# =============================================================================
# Connect With Retry
# =============================================================================

class TestConnect:
    """Tests for ConnectionManager.connect()."""

    @pytest.mark.parametrize("attempts", [1, 3, 5])
    def test_always_failing_target_is_tried_exactly_n_times(self, settings, attempts):
        """N attempts, N-1 sleeps of the fixed delay, then a fatal error."""
        settings = settings.model_copy(update={"DB_RETRY_ATTEMPTS": attempts, "DB_RETRY_DELAY": 0.5})
        manager = ConnectionManager(settings)

        with patch("lib.database.create_engine", side_effect=severed("connection refused")) as engine_factory, \
                patch("lib.database.time.sleep") as sleep:
            with pytest.raises(DatabaseConnectionError) as exc_info:
                manager.connect()

        assert engine_factory.call_count == attempts
        assert sleep.call_args_list == [call(0.5)] * (attempts - 1)
        assert exc_info.value.status_code == 503
        assert exc_info.value.details["retry_attempts"] == attempts
        assert exc_info.value.details["operation"] == "connect_database"

        status = manager.get_health_status()
        assert status.is_healthy is False
        assert status.retry_count == attempts
        manager.close()

    def test_success_after_failures_resets_retry_count(self, settings):
        """Fail twice, succeed on the third attempt."""
        calls = []

        def flaky_create_engine(*args, **kwargs):
            calls.append(1)
            if len(calls) < 3:
                raise severed("connection refused")
            return real_create_engine(*args, **kwargs)

        manager = ConnectionManager(settings)
        with patch("lib.database.create_engine", side_effect=flaky_create_engine), \
                patch("lib.database.time.sleep") as sleep:
            manager.connect()

        assert len(calls) == 3
        assert sleep.call_count == 2

        status = manager.get_health_status()
        assert status.is_healthy is True
        assert status.retry_count == 0
        assert status.last_error == ""
        manager.close()

    def test_retry_scenario_elapsed_time(self, settings):
        """attempts=3, delay=0.2, failures on 1 and 2 -> success after ~0.4s."""
        settings = settings.model_copy(update={"DB_RETRY_ATTEMPTS": 3, "DB_RETRY_DELAY": 0.2})
        calls = []

        def flaky_create_engine(*args, **kwargs):
            calls.append(1)
            if len(calls) < 3:
                raise severed("connection refused")
            return real_create_engine(*args, **kwargs)

        manager = ConnectionManager(settings)
        start = time.monotonic()
        with patch("lib.database.create_engine", side_effect=flaky_create_engine):
            manager.connect()
        elapsed = time.monotonic() - start

        assert 0.4 <= elapsed < 2.0
        assert manager.get_health_status().retry_count == 0
        manager.close()

    def test_failed_attempts_are_reported(self, settings):
        """Each failure is forwarded with operation and attempt tags."""
        reporter = MagicMock()
        settings = settings.model_copy(update={"DB_RETRY_ATTEMPTS": 2})
        manager = ConnectionManager(settings, Observability(error_reporter=reporter))

        with patch("lib.database.create_engine", side_effect=severed()):
            with pytest.raises(DatabaseConnectionError):
                manager.connect()

        assert reporter.capture_exception.call_count == 2
        tags = [c.args[1] for c in reporter.capture_exception.call_args_list]
        assert tags[0]["operation"] == "database_connection"
        assert [t["attempt"] for t in tags] == ["1", "2"]
        manager.close()

    def test_unreachable_database_file(self, tmp_path, settings):
        """A target that cannot be opened exhausts retries."""
        settings = settings.model_copy(update={
            "DATABASE_URL": f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}",
            "DB_RETRY_ATTEMPTS": 2,
        })

        with pytest.raises(DatabaseConnectionError):
            ConnectionManager.create(settings)

    def test_pool_bounds_from_settings(self, db_manager, settings):
        pool = db_manager.get_engine().pool
        assert pool.size() == settings.DB_MAX_IDLE_CONNS
        assert pool.size() + pool._max_overflow == settings.DB_MAX_OPEN_CONNS

    def test_logs_through_injected_logger(self, settings, caplog):
        """Connect progress goes to the logger handed in at construction."""
        custom = logging.getLogger("tests.injected_db_logger")
        manager = ConnectionManager(settings, Observability(logger=custom))

        with caplog.at_level(logging.INFO, logger="tests.injected_db_logger"):
            manager.connect()

        messages = [r.getMessage() for r in caplog.records if r.name == "tests.injected_db_logger"]
        assert "Attempting to connect to database (attempt 1/3)" in messages
        assert "Database connection established successfully" in messages
        assert not any(r.name == "lib.database" for r in caplog.records)
        manager.close()

    def test_idle_connections_are_replaced(self, settings):
        """Connections idle longer than DB_CONN_MAX_IDLE_TIME are not reused."""
        settings = settings.model_copy(update={"DB_CONN_MAX_IDLE_TIME": 0.05})
        manager = ConnectionManager(settings)
        manager.connect()

        with manager.connection() as conn:
            first = conn.connection.dbapi_connection
        time.sleep(0.1)
        with manager.connection() as conn:
            second = conn.connection.dbapi_connection

        assert first is not second
        manager.close()


# =============================================================================
# Health Checks
# =============================================================================

class TestHealthCheck:
    """Tests for full and fast health checks."""

    def test_healthy_database(self, db_manager):
        status = db_manager.health_check()

        assert status.is_healthy is True
        assert status.last_error == ""
        assert status.last_check is not None
        assert status.response_time.total_seconds() >= 0

    def test_severed_connection(self, db_manager, settings):
        with patch.object(db_manager, "_ping", side_effect=severed()):
            status = db_manager.health_check()

        assert status.is_healthy is False
        assert "server closed the connection" in status.last_error
        assert 0 <= status.response_time.total_seconds() <= settings.DB_HEALTH_TIMEOUT
        assert db_manager.is_healthy() is False

    def test_probe_timeout_is_recorded(self, settings):
        settings = settings.model_copy(update={"DB_HEALTH_TIMEOUT": 0.1})
        manager = ConnectionManager(settings)
        manager.connect()
        release = threading.Event()

        with patch.object(manager, "_ping", side_effect=lambda engine: release.wait(5)):
            start = time.monotonic()
            status = manager.health_check()
            elapsed = time.monotonic() - start

        release.set()
        assert status.is_healthy is False
        assert "timed out" in status.last_error
        assert elapsed < 1.0
        manager.close()

    def test_recovers_after_failure(self, db_manager):
        with patch.object(db_manager, "_ping", side_effect=severed()):
            assert db_manager.health_check().is_healthy is False

        status = db_manager.health_check()
        assert status.is_healthy is True
        assert status.last_error == ""

    def test_not_connected(self, settings):
        manager = ConnectionManager(settings)

        status = manager.health_check()

        assert status.is_healthy is False
        assert status.last_error == "database is not connected"
        manager.close()

    def test_stuck_probes_do_not_starve_later_checks(self, settings):
        """Two abandoned probes still leave room for the next one."""
        settings = settings.model_copy(update={"DB_HEALTH_TIMEOUT": 0.1})
        manager = ConnectionManager(settings)
        manager.connect()
        release = threading.Event()
        calls = []

        def ping(engine):
            calls.append(1)
            if len(calls) <= 2:
                release.wait(5)
                return
            ConnectionManager._ping(engine)

        with patch.object(manager, "_ping", side_effect=ping):
            assert manager.health_check().is_healthy is False
            assert manager.health_check().is_healthy is False
            status = manager.health_check()

        release.set()
        assert status.is_healthy is True
        assert status.last_error == ""
        manager.close()

    def test_returned_status_is_a_copy(self, db_manager):
        status = db_manager.health_check()
        status.is_healthy = False
        status.last_error = "tampered"

        assert db_manager.get_health_status().is_healthy is True
        assert db_manager.get_health_status().last_error == ""

    def test_fast_check_serves_recent_snapshot(self, db_manager):
        """Two fast checks right after a full check return it without probing."""
        full = db_manager.health_check()

        with patch.object(db_manager, "_ping") as ping:
            first = db_manager.fast_health_check()
            second = db_manager.fast_health_check()

        ping.assert_not_called()
        assert first == full
        assert second == full

    def test_fast_check_refreshes_stale_snapshot_in_background(self, settings):
        """A stale snapshot is returned at once while a probe runs elsewhere."""
        settings = settings.model_copy(update={"DB_HEALTH_CACHE_TTL": 0})
        manager = ConnectionManager(settings)
        manager.connect()
        stale = manager.health_check()

        started = threading.Event()
        release = threading.Event()

        def slow_ping(engine):
            started.set()
            release.wait(5)

        with patch.object(manager, "_ping", side_effect=slow_ping) as ping:
            start = time.monotonic()
            snapshot = manager.fast_health_check()
            elapsed = time.monotonic() - start

            assert elapsed < 0.5
            assert snapshot == stale
            assert started.wait(2)

            # A refresh is already running; no second probe is started
            manager.fast_health_check()
            assert ping.call_count == 1

            release.set()
            assert wait_until(lambda: manager.get_health_status().last_check != stale.last_check)

        assert wait_until(lambda: not manager._refresh_in_flight)
        manager.close()


# =============================================================================
# Metrics
# =============================================================================

class TestMetrics:
    """Tests for pool metrics collection."""

    def test_bounds_come_from_settings(self, db_manager, settings):
        metrics = db_manager.get_metrics()

        assert metrics.max_open_connections == settings.DB_MAX_OPEN_CONNS == 7
        assert metrics.max_idle_connections == settings.DB_MAX_IDLE_CONNS == 3

    def test_in_use_and_idle_counts(self, db_manager):
        with db_manager.connection():
            db_manager._update_metrics()
            busy = db_manager.get_metrics()

        db_manager._update_metrics()
        idle = db_manager.get_metrics()

        assert busy.in_use_connections == 1
        assert busy.open_connections == busy.idle_connections + 1
        assert idle.in_use_connections == 0
        assert idle.idle_connections >= 1
        assert idle.total_connections == idle.open_connections

    def test_background_collection(self, settings):
        settings = settings.model_copy(update={"DB_METRICS_INTERVAL": 0.05})
        manager = ConnectionManager.create(settings)

        with manager.connection():
            assert wait_until(lambda: manager.get_metrics().in_use_connections == 1)

        assert wait_until(lambda: manager.get_metrics().in_use_connections == 0)
        manager.close()

    def test_saturated_pool_counts_waits(self, settings):
        settings = settings.model_copy(update={"DB_MAX_OPEN_CONNS": 1, "DB_MAX_IDLE_CONNS": 1})
        manager = ConnectionManager(settings)
        manager.connect()
        acquired = threading.Event()

        def acquire():
            with manager.connection():
                acquired.set()

        with manager.connection():
            waiter = threading.Thread(target=acquire)
            waiter.start()
            time.sleep(0.1)
            assert not acquired.is_set()

        waiter.join(timeout=2)
        assert acquired.is_set()

        manager._update_metrics()
        metrics = manager.get_metrics()
        assert metrics.wait_count == 1
        assert metrics.wait_duration.total_seconds() >= 0.05
        manager.close()

    def test_timed_out_wait_is_counted(self, settings):
        """A saturated acquisition that hits the pool timeout is still a wait."""
        settings = settings.model_copy(update={
            "DB_MAX_OPEN_CONNS": 1,
            "DB_MAX_IDLE_CONNS": 1,
            "DB_CONNECT_TIMEOUT": 0.3,
        })
        manager = ConnectionManager(settings)
        manager.connect()

        with manager.connection():
            with pytest.raises(PoolTimeoutError):
                with manager.connection():
                    pass

        manager._update_metrics()
        metrics = manager.get_metrics()
        assert metrics.wait_count == 1
        assert metrics.wait_duration.total_seconds() >= 0.2
        manager.close()

    def test_returned_metrics_are_a_copy(self, db_manager):
        metrics = db_manager.get_metrics()
        metrics.max_open_connections = 999

        assert db_manager.get_metrics().max_open_connections == 7


# =============================================================================
# Shutdown
# =============================================================================

class TestClose:
    """Tests for ConnectionManager.close()."""

    def test_close_releases_pool(self, settings):
        manager = ConnectionManager.create(settings)
        engine = manager.get_engine()
        loops = list(manager._threads)

        with patch.object(engine, "dispose", wraps=engine.dispose) as dispose:
            manager.close()
            manager.close()

        dispose.assert_called_once()
        with pytest.raises(DatabaseError):
            manager.get_engine()
        assert len(loops) == 2
        assert not any(thread.is_alive() for thread in loops)

    def test_close_failure_is_raised(self, settings):
        manager = ConnectionManager(settings)
        manager.connect()

        with patch.object(manager.get_engine(), "dispose", side_effect=RuntimeError("boom")):
            with pytest.raises(DatabaseError) as exc_info:
                manager.close()

        assert exc_info.value.details["operation"] == "close_database"

    def test_close_without_connection(self, settings):
        manager = ConnectionManager(settings)
        manager.close()

    def test_session_rolls_back_uncommitted_work(self, db_manager):
        with db_manager.session() as session:
            session.add(Company(name="Uncommitted"))
            session.flush()

        with db_manager.session() as session:
            assert session.query(Company).filter_by(name="Uncommitted").count() == 0
