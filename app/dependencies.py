# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
#
# The ConnectionManager and Settings live on app.state; they are created in
# the application lifespan, never at import time.
# =============================================================================

from collections.abc import Iterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import Settings
from core.services import CompanyService, UserService
from lib.database import ConnectionManager


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


def get_db_manager(request: Request) -> ConnectionManager:
    """
    Get the application's ConnectionManager.

    Returns the instance created during startup.
    """
    return request.app.state.db_manager


def get_db_session(
    manager: Annotated[ConnectionManager, Depends(get_db_manager)],
) -> Iterator[Session]:
    """One ORM session per request, rolled back unless a service committed."""
    with manager.session() as session:
        yield session


def get_user_service(session: Annotated[Session, Depends(get_db_session)]) -> UserService:
    return UserService(session)


def get_company_service(session: Annotated[Session, Depends(get_db_session)]) -> CompanyService:
    return CompanyService(session)


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
DbManagerDep = Annotated[ConnectionManager, Depends(get_db_manager)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
CompanyServiceDep = Annotated[CompanyService, Depends(get_company_service)]
