# =============================================================================
# app/routers/users.py - User CRUD Endpoints
# =============================================================================
# All endpoints require authentication (applied where the router is mounted).
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from app.dependencies import UserServiceDep
from core.models.common import Page
from core.models.user import UserCreate, UserResponse, UserUpdate

router = APIRouter()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(request: UserCreate, users: UserServiceDep):
    """
    Create a user.

    Every id in company_ids must exist (404 otherwise).
    Emails are unique; a duplicate returns 409.
    """
    return UserResponse.model_validate(users.create(request))


@router.get("", response_model=Page[UserResponse])
def list_users(
    users: UserServiceDep,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 10,
    search: Annotated[str | None, Query(max_length=100, description="Match name or email")] = None,
    company_id: Annotated[UUID | None, Query(description="Only members of this company")] = None,
):
    """List users with pagination, ordered by last name."""
    items, total = users.list(page=page, page_size=page_size, search=search, company_id=company_id)
    return Page[UserResponse](
        items=[UserResponse.model_validate(u) for u in items],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: Annotated[UUID, Path(description="User UUID")],
    users: UserServiceDep,
):
    """Get one user with their companies."""
    return UserResponse.model_validate(users.get_by_id(user_id))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: Annotated[UUID, Path(description="User UUID")],
    request: UserUpdate,
    users: UserServiceDep,
):
    """
    Update a user.

    Omitted fields are left unchanged; company_ids replaces the companies.
    """
    return UserResponse.model_validate(users.update(user_id, request))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: Annotated[UUID, Path(description="User UUID")],
    users: UserServiceDep,
):
    """Delete a user."""
    users.delete(user_id)
