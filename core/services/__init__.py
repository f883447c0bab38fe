# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .base import BaseService
from .company_service import CompanyService
from .user_service import UserService

__all__ = [
    "BaseService",
    "CompanyService",
    "UserService",
]
