"""
Tubely Authentication Module

Bearer-token authentication for the upload endpoints. Tokens are HS256 JWTs
signed with the configured ``jwt_secret``; the ``sub`` claim carries the
user's UUID. Verification is stateless: nothing is cached or shared between
requests.

Usage:
    ```python
    from fastapi import Depends
    from tubely.core.auth import get_current_user_id

    @router.get("/protected")
    async def protected_route(user_id: UUID = Depends(get_current_user_id)):
        return {"user_id": str(user_id)}
    ```
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import Depends, Header, status
from jose import JWTError, jwt

from tubely.config import Settings, get_settings
from tubely.utils.responses import APIError


# Configure module logger
logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


# =============================================================================
# Exceptions
# =============================================================================


class AuthError(Exception):
    """Base exception for authentication failures."""


class AuthMissingError(AuthError):
    """Raised when the Authorization header is absent or not a bearer token."""


class AuthInvalidError(AuthError):
    """Raised when a bearer token fails signature, expiry or claim checks."""


# =============================================================================
# Token Functions
# =============================================================================


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header value.

    Args:
        authorization: Raw header value, or None when the header is absent.

    Returns:
        str: The token string.

    Raises:
        AuthMissingError: If the header is missing, uses another scheme, or
            carries an empty token.
    """
    if not authorization:
        raise AuthMissingError("no authorization header included in request")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        raise AuthMissingError("authorization header is not a bearer token")

    token = token.strip()
    if not token:
        raise AuthMissingError("bearer token is empty")
    return token


def create_access_token(
    user_id: UUID,
    settings: Settings | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """
    Issue a signed access token for ``user_id``.

    Token claims:
    - iss: ``settings.jwt_issuer`` (omitted when unset)
    - sub: the user's UUID
    - iat / exp: issue time and expiry (``jwt_expiration_hours`` by default)

    Args:
        user_id: The user the token is issued for.
        settings: Optional Settings instance. If not provided, uses get_settings().
        expires_in: Override for the token lifetime. A negative value yields
            an already-expired token.

    Returns:
        str: The encoded JWT.
    """
    if settings is None:
        settings = get_settings()

    now = datetime.now(UTC)
    lifetime = expires_in if expires_in is not None else timedelta(
        hours=settings.jwt_expiration_hours
    )
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + lifetime,
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer

    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    logger.debug("Issued access token for user %s", user_id)
    return token


def validate_jwt(token: str, settings: Settings) -> UUID:
    """
    Validate a bearer token and return the authenticated user's id.

    Verifies the signature against ``settings.jwt_secret``, the expiry, the
    issuer (when ``settings.jwt_issuer`` is set), and that ``sub`` is a UUID.

    Args:
        token: The JWT string.
        settings: Settings carrying the secret, algorithm and issuer.

    Returns:
        UUID: The subject of the token.

    Raises:
        AuthInvalidError: On any validation failure.
    """
    decode_options: dict[str, Any] = {"algorithms": [settings.jwt_algorithm]}
    if settings.jwt_issuer:
        decode_options["issuer"] = settings.jwt_issuer

    try:
        claims = jwt.decode(token, settings.jwt_secret, **decode_options)
    except JWTError as e:
        raise AuthInvalidError(f"invalid token: {e}") from e

    subject = claims.get("sub")
    if not subject:
        raise AuthInvalidError("token is missing the 'sub' claim")

    try:
        return UUID(str(subject))
    except ValueError as e:
        raise AuthInvalidError(f"token subject is not a valid user id: {subject!r}") from e


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> UUID:
    """
    FastAPI dependency resolving the authenticated user's id.

    Raises:
        APIError: 401 "Couldn't find JWT" when no bearer token is present,
            401 "Couldn't validate JWT" when the token is rejected.
    """
    try:
        token = get_bearer_token(authorization)
    except AuthMissingError as e:
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Couldn't find JWT", e) from e

    try:
        return validate_jwt(token, settings)
    except AuthInvalidError as e:
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Couldn't validate JWT", e) from e


__all__ = [
    "AuthError",
    "AuthInvalidError",
    "AuthMissingError",
    "create_access_token",
    "get_bearer_token",
    "get_current_user_id",
    "validate_jwt",
]
