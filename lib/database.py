# =============================================================================
# lib/database.py - Supervised Database Connection
# =============================================================================
# Owns the pooled SQLAlchemy engine for the application and supervises it:
# - Connect with a fixed-delay retry at startup (fatal when exhausted)
# - Periodic and on-demand liveness probes with a bounded timeout
# - Periodic pool statistics for the metrics endpoint
# - Graceful shutdown
#
# Usage:
#   manager = ConnectionManager.create(settings, observability)
#   with manager.session() as session:
#       session.execute(...)
#   manager.close()
# =============================================================================

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DisconnectionError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from app.config import Settings
from app.exceptions import DatabaseConnectionError, DatabaseError
from core.models.health import ConnectionMetrics, HealthStatus
from lib.monitoring import Observability

logger = logging.getLogger(__name__)

PROBE_WORKERS = 4


class ConnectionManager:
    """
    Supervises one pooled connection to the relational store.

    The engine's pool is safe for concurrent use; this class only adds
    supervision around it. HealthStatus and ConnectionMetrics each have their
    own lock, and every getter hands out a copy.

    Example:
        manager = ConnectionManager(settings, observability)
        manager.connect()                 # raises DatabaseConnectionError
        manager.start_background_tasks()
        status = manager.fast_health_check()
    """

    def __init__(self, settings: Settings, observability: Observability | None = None):
        self.settings = settings
        self.observability = observability or Observability(logger=logger)
        self.logger = self.observability.logger

        self._engine: Engine | None = None
        self._session_factory = sessionmaker(expire_on_commit=False)

        self._health = HealthStatus()
        self._health_lock = threading.Lock()
        self._last_check_at: float | None = None
        self._refresh_in_flight = False

        self._metrics = ConnectionMetrics(
            max_open_connections=settings.DB_MAX_OPEN_CONNS,
            max_idle_connections=settings.DB_MAX_IDLE_CONNS,
        )
        self._metrics_lock = threading.Lock()
        self._wait_count = 0
        self._wait_seconds = 0.0

        # A timed-out probe holds its worker until the driver returns
        self._probe_executor = ThreadPoolExecutor(max_workers=PROBE_WORKERS, thread_name_prefix="db-probe")
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._close_lock = threading.Lock()
        self._closed = False

    @classmethod
    def create(cls, settings: Settings, observability: Observability | None = None) -> "ConnectionManager":
        """
        Connect (with retry) and start the supervision loops.

        Raises:
            DatabaseConnectionError: If every connection attempt failed
        """
        manager = cls(settings, observability)
        try:
            manager.connect()
        except DatabaseConnectionError:
            manager.close()
            raise
        manager.start_background_tasks()
        return manager

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """
        Open the pooled engine, retrying with a fixed delay.

        Sleeps DB_RETRY_DELAY between attempts, never before the first or
        after the last one.

        Raises:
            DatabaseConnectionError: After DB_RETRY_ATTEMPTS failed attempts
        """
        attempts = self.settings.DB_RETRY_ATTEMPTS
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            self.logger.info(f"Attempting to connect to database (attempt {attempt}/{attempts})")

            try:
                engine = self._open_engine()
            except Exception as e:
                last_error = e
                with self._health_lock:
                    self._health.retry_count = attempt
                    self._health.is_healthy = False
                    self._health.last_error = str(e)

                self.observability.report(
                    e, operation="database_connection", attempt=attempt, retry_count=attempt
                )
                self.logger.error(f"Database connection attempt {attempt} failed: {e}")

                if attempt < attempts:
                    time.sleep(self.settings.DB_RETRY_DELAY)
                continue

            self._engine = engine
            with self._health_lock:
                self._health.is_healthy = True
                self._health.retry_count = 0
                self._health.last_error = ""
            self._update_metrics()
            self.logger.info("Database connection established successfully")
            return

        raise DatabaseConnectionError(
            "Failed to connect to database after retries",
            cause=last_error,
            attempts=attempts,
        ).with_operation("connect_database").with_resource("database")

    def _open_engine(self) -> Engine:
        url = make_url(self.settings.database_url)
        max_open = self.settings.DB_MAX_OPEN_CONNS
        # QueuePool treats pool_size=0 as unbounded
        pool_size = max(1, min(self.settings.DB_MAX_IDLE_CONNS, max_open))

        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_open - pool_size,
            pool_recycle=self.settings.DB_CONN_MAX_LIFETIME,
            pool_timeout=self.settings.DB_CONNECT_TIMEOUT,
            connect_args=self._connect_args(url.get_backend_name()),
            echo=self.settings.DEBUG,
        )
        event.listen(engine, "checkin", self._on_checkin)
        event.listen(engine, "checkout", self._on_checkout)

        try:
            self._call_with_timeout(self._ping, self.settings.DB_CONNECT_TIMEOUT, engine)
        except Exception:
            engine.dispose()
            raise
        return engine

    def _connect_args(self, backend: str) -> dict[str, Any]:
        if backend == "postgresql":
            statement_timeout_ms = int(self.settings.DB_QUERY_TIMEOUT * 1000)
            return {
                "connect_timeout": max(1, int(self.settings.DB_CONNECT_TIMEOUT)),
                "options": f"-c timezone={self.settings.DB_TIMEZONE} "
                           f"-c statement_timeout={statement_timeout_ms}",
            }
        if backend == "sqlite":
            return {"check_same_thread": False, "timeout": self.settings.DB_CONNECT_TIMEOUT}
        return {}

    def _on_checkin(self, dbapi_connection, connection_record) -> None:
        connection_record.info["checked_in_at"] = time.monotonic()

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy) -> None:
        checked_in_at = connection_record.info.pop("checked_in_at", None)
        if checked_in_at is None:
            return
        idle_for = time.monotonic() - checked_in_at
        if idle_for > self.settings.DB_CONN_MAX_IDLE_TIME:
            # The pool invalidates the record and retries with a fresh connection
            raise DisconnectionError(f"connection idle for {idle_for:.1f}s")

    @staticmethod
    def _ping(engine: Engine) -> None:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def _call_with_timeout(self, fn: Callable[..., Any], timeout: float, *args: Any) -> Any:
        future = self._probe_executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise TimeoutError(f"database probe timed out after {timeout:g}s") from None

    # -------------------------------------------------------------------------
    # Handles
    # -------------------------------------------------------------------------

    def get_engine(self) -> Engine:
        """
        Return the live pooled engine.

        Raises:
            DatabaseError: If connect() has not succeeded or the manager is closed
        """
        if self._engine is None:
            raise DatabaseError("Database is not connected", code="DATABASE_NOT_CONNECTED", status_code=503)
        return self._engine

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """
        Check a connection out of the pool.

        Acquisitions that find every connection in use are counted as waits,
        including those that end in a pool timeout.
        """
        engine = self.get_engine()
        saturated = engine.pool.checkedout() >= self.settings.DB_MAX_OPEN_CONNS
        start = time.monotonic()

        try:
            conn = engine.connect()
        finally:
            if saturated:
                waited = time.monotonic() - start
                with self._metrics_lock:
                    self._wait_count += 1
                    self._wait_seconds += waited

        with conn:
            yield conn

    @contextmanager
    def session(self) -> Iterator[Session]:
        """ORM session bound to a pooled connection; rolled back unless committed."""
        with self.connection() as conn:
            with self._session_factory(bind=conn) as session:
                yield session

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def health_check(self) -> HealthStatus:
        """
        Probe the database and record the result.

        Never raises: failures (including a probe exceeding DB_HEALTH_TIMEOUT)
        are recorded in the returned status.
        """
        start = time.monotonic()
        engine = self._engine

        if engine is None:
            self._record_probe(False, "database is not connected", 0.0)
            return self.get_health_status()

        try:
            self._call_with_timeout(self._ping, self.settings.DB_HEALTH_TIMEOUT, engine)
        except Exception as e:
            elapsed = time.monotonic() - start
            error = str(e) or type(e).__name__
            self.logger.warning(f"Database health check failed after {elapsed:.3f}s: {error}")
            self.observability.report(e, operation="database_health_check")
            self._record_probe(False, error, elapsed)
        else:
            self._record_probe(True, "", time.monotonic() - start)

        return self.get_health_status()

    def fast_health_check(self) -> HealthStatus:
        """
        Return the cached status, refreshing it in the background when stale.

        A snapshot younger than DB_HEALTH_CACHE_TTL is returned as is. An
        older one is returned immediately while a full check runs in another
        thread; at most one such refresh runs at a time.
        """
        with self._health_lock:
            snapshot = self._health.model_copy()
            fresh = (
                self._last_check_at is not None
                and time.monotonic() - self._last_check_at < self.settings.DB_HEALTH_CACHE_TTL
            )
            if fresh:
                return snapshot
            start_refresh = not self._refresh_in_flight
            self._refresh_in_flight = True

        if start_refresh:
            threading.Thread(target=self._refresh_health, name="db-health-refresh", daemon=True).start()
        return snapshot

    def _refresh_health(self) -> None:
        try:
            self.health_check()
        finally:
            with self._health_lock:
                self._refresh_in_flight = False

    def _record_probe(self, is_healthy: bool, error: str, elapsed: float) -> None:
        with self._health_lock:
            self._health.is_healthy = is_healthy
            self._health.last_check = datetime.now(timezone.utc)
            self._health.last_error = error
            self._health.response_time = timedelta(seconds=max(0.0, elapsed))
            self._last_check_at = time.monotonic()

    def get_health_status(self) -> HealthStatus:
        """Copy of the latest recorded status, without probing."""
        with self._health_lock:
            return self._health.model_copy()

    def is_healthy(self) -> bool:
        return self.get_health_status().is_healthy

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _update_metrics(self) -> None:
        engine = self._engine
        if engine is None:
            return

        try:
            idle = engine.pool.checkedin()
            in_use = engine.pool.checkedout()
        except Exception as e:
            self.logger.error(f"Failed to collect pool metrics: {e}")
            return

        with self._metrics_lock:
            self._metrics = ConnectionMetrics(
                total_connections=idle + in_use,
                open_connections=idle + in_use,
                idle_connections=idle,
                in_use_connections=in_use,
                wait_count=self._wait_count,
                wait_duration=timedelta(seconds=self._wait_seconds),
                max_open_connections=self.settings.DB_MAX_OPEN_CONNS,
                max_idle_connections=self.settings.DB_MAX_IDLE_CONNS,
            )

    def get_metrics(self) -> ConnectionMetrics:
        """Copy of the latest pool statistics."""
        with self._metrics_lock:
            return self._metrics.model_copy()

    # -------------------------------------------------------------------------
    # Background Loops
    # -------------------------------------------------------------------------

    def start_background_tasks(self) -> None:
        """Start the periodic health-check and metrics loops."""
        if self._threads:
            return

        loops = (
            ("db-health-check", self.settings.DB_HEALTH_CHECK_INTERVAL, self.health_check),
            ("db-metrics", self.settings.DB_METRICS_INTERVAL, self._update_metrics),
        )
        for name, interval, task in loops:
            thread = threading.Thread(
                target=self._run_periodically,
                args=(interval, task),
                name=name,
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

        self.logger.debug("Database supervision loops started")

    def _run_periodically(self, interval: float, task: Callable[[], Any]) -> None:
        while not self._stop_event.wait(interval):
            try:
                task()
            except Exception:
                self.logger.exception(f"Periodic database task {task.__name__} failed")

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """
        Stop supervision and release the pool.

        Raises:
            DatabaseError: If releasing the pool failed
        """
        with self._close_lock:
            if self._closed:
                self.logger.debug("ConnectionManager.close() called more than once")
                return
            self._closed = True

        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=1.0)
        self._threads.clear()
        self._probe_executor.shutdown(wait=False, cancel_futures=True)

        engine, self._engine = self._engine, None
        if engine is None:
            return

        try:
            engine.dispose()
        except Exception as e:
            self.logger.error(f"Failed to close database connection: {e}")
            error = DatabaseError("Failed to close database connection", e)
            error.with_operation("close_database").with_resource("database")
            raise error from e

        self.logger.info("Database connection closed gracefully")
