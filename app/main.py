# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Starter API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.auth import get_current_user
from app.auth import routes as auth_routes
from app.config import Settings, settings as default_settings
from app.exceptions import (
    AppException,
    DatabaseError,
    app_exception_handler,
    sqlalchemy_exception_handler,
)
from app.middleware import log_requests
from app.routers import companies, health, users
from core.tables import Base
from lib.database import ConnectionManager
from lib.monitoring import Observability

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure root logging once per process."""
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: connect to the database (with retry) and start supervision.
      A DatabaseConnectionError propagates, so the server never serves traffic
      without a database.
    - Shutdown: stop supervision and release the pool.
    """
    settings: Settings = app.state.settings
    observability = Observability.from_settings(settings)
    app.state.observability = observability

    logger.info(f"Starting {settings.APP_NAME} in {settings.ENVIRONMENT} mode")

    manager = ConnectionManager(settings, observability)
    try:
        await asyncio.to_thread(manager.connect)
    except DatabaseError:
        logger.critical("Database unavailable, aborting startup")
        manager.close()
        raise

    if settings.DB_AUTO_MIGRATE:
        Base.metadata.create_all(manager.get_engine())
        logger.info("Database tables created")

    manager.start_background_tasks()
    app.state.db_manager = manager

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    try:
        manager.close()
    except DatabaseError as e:
        logger.error(f"Database shutdown error: {e}")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to run with; the environment-loaded settings by default
    """
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
## Starter API

CRUD for users and companies on a relational database, with JWT
authentication against an OIDC identity provider.

### Operational endpoints

| Endpoint | Purpose |
|----------|---------|
| `/api/v1/health/live` | Process liveness |
| `/api/v1/health/ready` | Readiness (cached database status) |
| `/api/v1/health/database` | Database probe result |
| `/api/v1/health/metrics` | Connection pool statistics |
""",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Auth",
                "description": "Inspect the authenticated caller",
            },
            {
                "name": "Users",
                "description": "Create and manage users",
            },
            {
                "name": "Companies",
                "description": "Create and manage companies",
            },
            {
                "name": "Health",
                "description": "API health, readiness and database pool metrics",
            },
        ],
    )
    app.state.settings = settings

    # =========================================================================
    # Middleware
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)

    # =========================================================================
    # Exception Handlers
    # =========================================================================

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)

    @app.exception_handler(Exception)
    async def handle_general_exception(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            }
        )

    # =========================================================================
    # Routers
    # =========================================================================

    authenticated = [Depends(get_current_user)]

    app.include_router(auth_routes.router, prefix="/api/v1/auth", tags=["Auth"])
    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(users.router, prefix="/api/v1/users", tags=["Users"], dependencies=authenticated)
    app.include_router(companies.router, prefix="/api/v1/companies", tags=["Companies"],
                       dependencies=authenticated)

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint - returns API info.
        """
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


app = create_app()
