# =============================================================================
# core/models/common.py - Shared Schemas
# =============================================================================
# Pagination wrapper used by every list endpoint.
# =============================================================================

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """
    One page of a listing.

    Example:
        {
            "items": [...],
            "page": 1,
            "page_size": 10,
            "total": 42
        }
    """
    items: list[T] = Field(default_factory=list)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
