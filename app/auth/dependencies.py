# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication against an OIDC identity
# provider (Keycloak or compatible).
#
# Supports both:
# - RS256/ES256 tokens signed by the provider, verified via its JWKS
# - HS256 tokens signed with a shared secret (AUTH_JWT_SECRET), when configured
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

import logging
import threading
import time
from typing import Any, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.models import AuthUser, TokenPayload
from app.config import Settings

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor; missing credentials are handled below so the
# response is always 401
security = HTTPBearer(auto_error=False)

ALLOWED_ALGORITHMS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512", "HS256"}


class JWKSCache:
    """
    Cached copy of the identity provider's JWKS document.

    A failed refresh keeps serving the previous document. get() blocks on
    the network, so call it from a worker thread.
    """

    def __init__(self):
        self._jwks: dict = {}
        self._url: str | None = None
        self._fetched_at: float = 0
        self._lock = threading.Lock()

    def get(self, url: str, ttl: int) -> dict:
        with self._lock:
            current_time = time.time()
            if self._jwks and self._url == url and (current_time - self._fetched_at) < ttl:
                return self._jwks

            try:
                response = httpx.get(url, timeout=10)
                response.raise_for_status()
                self._jwks = response.json()
                self._url = url
                self._fetched_at = current_time
                logger.debug(f"Fetched JWKS from {url}")
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Failed to fetch JWKS: {e}")
                if not self._jwks:
                    return {"keys": []}

            return self._jwks

    def clear(self) -> None:
        with self._lock:
            self._jwks = {}
            self._url = None
            self._fetched_at = 0


jwks_cache = JWKSCache()


def _get_signing_key(token: str, settings: Settings) -> tuple[Any, str]:
    """
    Get the appropriate signing key for a token.

    Returns:
        Tuple of (key, algorithm) to use for verification

    Raises:
        JWTError: If no acceptable key exists for the token
    """
    unverified_header = jwt.get_unverified_header(token)
    alg = unverified_header.get("alg")
    kid = unverified_header.get("kid")

    if alg not in ALLOWED_ALGORITHMS:
        raise JWTError(f"Unsupported signing algorithm: {alg}")

    if alg == "HS256":
        if not settings.AUTH_JWT_SECRET:
            raise JWTError("HS256 tokens are not accepted")
        return settings.AUTH_JWT_SECRET, "HS256"

    jwks_url = settings.jwks_url
    if not jwks_url:
        raise JWTError("No identity provider configured")
    if not kid:
        raise JWTError("Token header has no key id")

    for key in jwks_cache.get(jwks_url, settings.AUTH_JWKS_CACHE_TTL).get("keys", []):
        if key.get("kid") == kid:
            return key, alg

    raise JWTError(f"No signing key found for kid={kid}")


def decode_token(token: str, settings: Settings) -> TokenPayload:
    """
    Verify a JWT and return its claims.

    May fetch the provider's JWKS, so it blocks.

    Raises:
        ExpiredSignatureError: If the token has expired
        JWTError: If the token is invalid
    """
    signing_key, algorithm = _get_signing_key(token, settings)

    payload = jwt.decode(
        token,
        signing_key,
        algorithms=[algorithm],
        audience=settings.AUTH_AUDIENCE,
        issuer=settings.AUTH_ISSUER_URL,
        options={"verify_aud": settings.AUTH_AUDIENCE is not None},
    )
    return TokenPayload(**payload)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """
    Extract and validate the caller from the bearer token.

    This dependency:
    1. Extracts the Bearer token from the Authorization header
    2. Verifies the JWT signature against the identity provider
    3. Validates expiry, audience and issuer
    4. Returns an AuthUser with the subject, email and realm roles

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authorization header required")

    settings: Settings = request.app.state.settings

    try:
        # Off the event loop: a JWKS refresh is a blocking HTTP call
        claims = await run_in_threadpool(decode_token, credentials.credentials, settings)

    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise _unauthorized("Token has expired")

    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized(f"Invalid token: {e}")

    if not claims.sub:
        logger.warning("JWT token missing 'sub' claim")
        raise _unauthorized("Invalid token: missing subject")

    logger.debug(f"Authenticated user: {claims.sub}")
    return AuthUser(
        id=claims.sub,
        email=claims.email,
        username=claims.preferred_username,
        roles=claims.roles,
    )


def require_roles(*roles: str):
    """
    Dependency factory that requires any of the given realm roles.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(require_roles("admin"))])
    """

    async def checker(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if not user.has_any_role(*roles):
            logger.warning(f"User {user.id} lacks roles {roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return checker
