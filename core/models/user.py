# =============================================================================
# core/models/user.py - User Schemas
# =============================================================================
# These models define the API contract for user operations:
# - UserCreate: Input for POST /users
# - UserUpdate: Input for PATCH /users/{id}
# - UserResponse: Output for every user endpoint
#
# Users belong to any number of companies, referenced by id.
# =============================================================================

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .company import CompanySummary

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserCreate(BaseModel):
    """
    Schema for creating a user.

    Example:
        {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "external_id": "5f1c...",
            "company_ids": ["550e8400-e29b-41d4-a716-446655440000"]
        }
    """
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    external_id: str | None = Field(
        default=None,
        max_length=255,
        description="Subject of the user at the identity provider"
    )
    company_ids: list[UUID] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """
    Partial update.

    Omitted fields are left unchanged. company_ids replaces the user's
    companies when present, including with an empty list.
    """
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    external_id: str | None = Field(default=None, max_length=255)
    company_ids: list[UUID] | None = None


class UserResponse(BaseModel):
    """Schema for returning user data to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    external_id: str | None = None
    companies: list[CompanySummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
