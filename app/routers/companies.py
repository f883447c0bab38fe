# =============================================================================
# app/routers/companies.py - Company CRUD Endpoints
# =============================================================================
# All endpoints require authentication (applied where the router is mounted).
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from app.dependencies import CompanyServiceDep
from core.models.common import Page
from core.models.company import CompanyCreate, CompanyResponse, CompanyUpdate

router = APIRouter()


@router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
def create_company(request: CompanyCreate, companies: CompanyServiceDep):
    """
    Create a company.

    Company names are unique; a duplicate returns 409.
    """
    return CompanyResponse.model_validate(companies.create(request))


@router.get("", response_model=Page[CompanyResponse])
def list_companies(
    companies: CompanyServiceDep,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 10,
    search: Annotated[str | None, Query(max_length=100, description="Match name or description")] = None,
):
    """List companies with pagination, ordered by name."""
    items, total = companies.list(page=page, page_size=page_size, search=search)
    return Page[CompanyResponse](
        items=[CompanyResponse.model_validate(c) for c in items],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(
    company_id: Annotated[UUID, Path(description="Company UUID")],
    companies: CompanyServiceDep,
):
    """Get one company."""
    return CompanyResponse.model_validate(companies.get_by_id(company_id))


@router.patch("/{company_id}", response_model=CompanyResponse)
def update_company(
    company_id: Annotated[UUID, Path(description="Company UUID")],
    request: CompanyUpdate,
    companies: CompanyServiceDep,
):
    """Update a company; omitted fields are left unchanged."""
    return CompanyResponse.model_validate(companies.update(company_id, request))


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company(
    company_id: Annotated[UUID, Path(description="Company UUID")],
    companies: CompanyServiceDep,
):
    """Delete a company. Users stay, without the association."""
    companies.delete(company_id)
