# =============================================================================
# core/models/company.py - Company Schemas
# =============================================================================
# These models define the API contract for company operations:
# - CompanyCreate: Input for POST /companies
# - CompanyUpdate: Input for PATCH /companies/{id} (all fields optional)
# - CompanyResponse: Output for every company endpoint
# - CompanySummary: Compact form embedded in user responses
# =============================================================================

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CompanyCreate(BaseModel):
    """
    Schema for creating a company.

    Example:
        {
            "name": "Acme Corp",
            "description": "Anvils and rockets",
            "website": "https://acme.example.com"
        }
    """
    name: str = Field(..., min_length=1, max_length=255, description="Unique company name")
    description: str | None = Field(default=None, max_length=2000)
    website: str | None = Field(default=None, max_length=255)


class CompanyUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    website: str | None = Field(default=None, max_length=255)


class CompanySummary(BaseModel):
    """Company as embedded in a user."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class CompanyResponse(BaseModel):
    """Schema for returning company data to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    website: str | None = None
    created_at: datetime
    updated_at: datetime
