# =============================================================================
# core/services/base.py - Shared Service Plumbing
# =============================================================================
# Common pieces of the ORM-backed services:
# - Session ownership
# - Commit with unique-violation mapping
# - Pagination
# =============================================================================

import logging
from typing import Any, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseService:
    """
    Base class for services working on one ORM session.

    The session is owned by the caller (one per request); services commit
    their own writes.
    """

    resource: str = "Resource"

    def __init__(self, session: Session):
        self.session = session

    def _commit(self, operation: str, **context: Any) -> None:
        """
        Commit the current transaction.

        Raises:
            ConflictError: If a unique constraint was violated
        """
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"{operation} violated a constraint: {e.orig}")
            error = ConflictError(
                f"{self.resource} conflicts with an existing record",
                details={key: str(value) for key, value in context.items()},
            )
            error.with_operation(operation).with_resource(self.resource.lower())
            raise error from e

    def _paginate(self, stmt: Select, page: int, page_size: int) -> tuple[list[Any], int]:
        """Run one page of stmt and count the full result."""
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = self.session.scalar(count_stmt) or 0

        items = self.session.scalars(
            stmt.offset((page - 1) * page_size).limit(page_size)
        ).all()
        return list(items), total
