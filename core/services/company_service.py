# =============================================================================
# core/services/company_service.py - Company Business Logic
# =============================================================================
# Handles company CRUD operations.
# Separates HTTP concerns from database/business logic.
# =============================================================================

import logging
from uuid import UUID

from sqlalchemy import or_, select

from app.exceptions import NotFoundError
from core.models.company import CompanyCreate, CompanyUpdate
from core.services.base import BaseService
from core.tables import Company

logger = logging.getLogger(__name__)


class CompanyService(BaseService):
    """Service for company management operations."""

    resource = "Company"

    def create(self, data: CompanyCreate) -> Company:
        """
        Create a new company.

        Raises:
            ConflictError: If a company with the same name exists
        """
        company = Company(**data.model_dump())
        self.session.add(company)
        self._commit("create_company", name=data.name)

        logger.info(f"Created company: {company.id}")
        return company

    def get_by_id(self, company_id: UUID) -> Company:
        """
        Get a company by ID.

        Raises:
            NotFoundError: If the company doesn't exist
        """
        company = self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company", company_id).with_operation("get_company")
        return company

    def get_many(self, company_ids: list[UUID]) -> list[Company]:
        """
        Resolve a list of company IDs, preserving order.

        Raises:
            NotFoundError: For the first ID that doesn't exist
        """
        wanted = list(dict.fromkeys(company_ids))
        if not wanted:
            return []

        found = {
            company.id: company
            for company in self.session.scalars(select(Company).where(Company.id.in_(wanted)))
        }
        for company_id in wanted:
            if company_id not in found:
                raise NotFoundError("Company", company_id)
        return [found[company_id] for company_id in wanted]

    def update(self, company_id: UUID, data: CompanyUpdate) -> Company:
        """
        Apply a partial update.

        Raises:
            NotFoundError: If the company doesn't exist
            ConflictError: If the new name is taken
        """
        company = self.get_by_id(company_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(company, field, value)

        if changes:
            self._commit("update_company", company_id=company_id)
            logger.info(f"Updated company: {company_id}")
        return company

    def delete(self, company_id: UUID) -> None:
        """
        Delete a company and its user associations.

        Raises:
            NotFoundError: If the company doesn't exist
        """
        company = self.get_by_id(company_id)
        self.session.delete(company)
        self._commit("delete_company", company_id=company_id)
        logger.info(f"Deleted company: {company_id}")

    def list(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None,
    ) -> tuple[list[Company], int]:
        """
        List companies ordered by name.

        Returns:
            Tuple of (companies, total count)
        """
        stmt = select(Company).order_by(Company.name)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Company.name.ilike(pattern), Company.description.ilike(pattern)))

        return self._paginate(stmt, page, page_size)
