"""
Identity provider integration.

Bearer tokens are HS256 JWTs with ``sub`` (user id) and ``role`` claims. The
reservation core trusts the decoded principal and runs its own authorization
guards (host-only confirm, renter-only reschedule, participant-only cancel).
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.exceptions import UnauthorizedException
from .principal import PrincipalRole, UserPrincipal

logger = logging.getLogger(__name__)

bearer_scheme_optional = HTTPBearer(auto_error=False)

DEFAULT_TOKEN_TTL = timedelta(hours=1)


def decode_access_token(token: str) -> Dict[str, Any]:
    payload_raw = jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(
    user_id: str,
    role: PrincipalRole = PrincipalRole.RENTER,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a token for ``user_id``; used by tooling and tests."""
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL)
    return cast(
        str,
        jwt.encode(
            {"sub": user_id, "role": PrincipalRole(role).value, "exp": expire},
            settings.jwt_secret_key.get_secret_value(),
            algorithm=settings.jwt_algorithm,
        ),
    )


def principal_from_token(token: str) -> UserPrincipal:
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")
    try:
        role = PrincipalRole(payload.get("role", PrincipalRole.RENTER.value))
    except ValueError:
        raise UnauthorizedException("Unknown role in token", code="INVALID_TOKEN")
    return UserPrincipal(user_id=user_id, role=role)


async def get_current_principal_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme_optional),
) -> Optional[UserPrincipal]:
    """
    Principal for the request if a valid bearer token is present.

    Returns None for anonymous or invalid tokens instead of raising, so read
    routes and the rate limiter can run for anonymous callers.
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        principal = principal_from_token(credentials.credentials)
    except UnauthorizedException:
        return None
    request.state.principal = principal
    return principal


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme_optional),
) -> UserPrincipal:
    """Principal for the request; 401 when the token is missing or invalid."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Not authenticated", code="NOT_AUTHENTICATED")
    principal = principal_from_token(credentials.credentials)
    request.state.principal = principal
    logger.debug(f"Successfully validated token for user: {principal.user_id}")
    return principal
