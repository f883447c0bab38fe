# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """
    Authenticated caller extracted from a verified JWT.

    This is the minimal identity available from the token itself,
    without querying the database.
    """
    model_config = ConfigDict(frozen=True)

    id: str  # 'sub' claim at the identity provider
    email: str | None = None
    username: str | None = None
    roles: tuple[str, ...] = ()

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


class TokenPayload(BaseModel):
    """
    Decoded access token claims.

    Keycloak-style tokens carry realm roles under realm_access.roles.
    """
    sub: str | None = None
    email: str | None = None
    preferred_username: str | None = None
    exp: int | None = None
    iat: int | None = None
    realm_access: dict = Field(default_factory=dict)

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(self.realm_access.get("roles", []))


class VerifyResponse(BaseModel):
    """Response of GET /auth/verify."""
    valid: bool
    user_id: str
    email: str | None = None
    roles: list[str] = Field(default_factory=list)
