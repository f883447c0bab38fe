# =============================================================================
# core/services/user_service.py - User Business Logic
# =============================================================================
# Handles user CRUD operations, including the user <-> company associations.
# =============================================================================

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from app.exceptions import NotFoundError
from core.models.user import UserCreate, UserUpdate
from core.services.base import BaseService
from core.services.company_service import CompanyService
from core.tables import User, user_companies

logger = logging.getLogger(__name__)


class UserService(BaseService):
    """
    Service for user management operations.

    Example:
        with manager.session() as session:
            user = UserService(session).create(UserCreate(...))
    """

    resource = "User"

    def __init__(self, session):
        super().__init__(session)
        self.companies = CompanyService(session)

    def create(self, data: UserCreate) -> User:
        """
        Create a user and attach the requested companies.

        Raises:
            NotFoundError: If a company ID doesn't exist
            ConflictError: If the email or external_id is taken
        """
        try:
            companies = self.companies.get_many(data.company_ids)
        except NotFoundError as e:
            e.with_operation("create_user")
            raise

        user = User(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            external_id=data.external_id,
            companies=companies,
        )
        self.session.add(user)
        self._commit("create_user", email=data.email)

        logger.info(f"Created user: {user.id}")
        return user

    def get_by_id(self, user_id: UUID) -> User:
        """
        Get a user with companies loaded.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        user = self.session.get(User, user_id, options=[selectinload(User.companies)])
        if user is None:
            raise NotFoundError("User", user_id).with_operation("get_user")
        return user

    def get_by_external_id(self, external_id: str) -> User | None:
        """Look up a user by identity-provider subject."""
        stmt = (
            select(User)
            .options(selectinload(User.companies))
            .where(User.external_id == external_id)
        )
        return self.session.scalars(stmt).first()

    def update(self, user_id: UUID, data: UserUpdate) -> User:
        """
        Apply a partial update.

        company_ids, when given, replaces the user's companies.

        Raises:
            NotFoundError: If the user or a company doesn't exist
            ConflictError: If the new email or external_id is taken
        """
        user = self.get_by_id(user_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"company_ids"})
        for field, value in changes.items():
            setattr(user, field, value)

        if data.company_ids is not None:
            try:
                user.companies = self.companies.get_many(data.company_ids)
            except NotFoundError as e:
                e.with_operation("update_user").with_context("user_id", str(user_id))
                raise

        self._commit("update_user", user_id=user_id)
        logger.info(f"Updated user: {user_id}")
        return user

    def delete(self, user_id: UUID) -> None:
        """
        Delete a user.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        user = self.get_by_id(user_id)
        self.session.delete(user)
        self._commit("delete_user", user_id=user_id)
        logger.info(f"Deleted user: {user_id}")

    def list(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None,
        company_id: UUID | None = None,
    ) -> tuple[list[User], int]:
        """
        List users ordered by last name, first name.

        Args:
            search: Case-insensitive match on name or email
            company_id: Only users belonging to this company

        Returns:
            Tuple of (users, total count)
        """
        stmt = (
            select(User)
            .options(selectinload(User.companies))
            .order_by(User.last_name, User.first_name)
        )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            ))
        if company_id is not None:
            stmt = stmt.join(user_companies, user_companies.c.user_id == User.id) \
                .where(user_companies.c.company_id == company_id)

        return self._paginate(stmt, page, page_size)
