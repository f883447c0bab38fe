# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# API endpoints for authentication-related operations.
#
# Note: Login and token issuance are handled by the identity provider.
# These routes are for inspecting the caller after authentication.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser, VerifyResponse
from app.dependencies import UserServiceDep
from app.exceptions import NotFoundError
from core.models.user import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    users: UserServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> UserResponse:
    """
    Get the profile linked to the caller's identity.

    Raises:
        401: If not authenticated
        404: If no user record has external_id equal to the token subject
    """
    record = users.get_by_external_id(user.id)
    if record is None:
        logger.info(f"No user record for subject {user.id}")
        raise NotFoundError("User", user.id).with_operation("get_current_user")

    return UserResponse.model_validate(record)


@router.get("/verify", response_model=VerifyResponse)
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> VerifyResponse:
    """
    Verify that the current token is valid.

    Raises:
        401: If token is invalid or expired
    """
    return VerifyResponse(
        valid=True,
        user_id=user.id,
        email=user.email,
        roles=list(user.roles),
    )
