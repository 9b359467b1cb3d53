# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.
"""

from fastapi import Depends

from ...auth import get_current_principal, get_current_principal_optional
from ...core.exceptions import ForbiddenException
from ...principal import UserPrincipal


def require_admin(principal: UserPrincipal = Depends(get_current_principal)) -> UserPrincipal:
    """Only operators may reach refund reconciliation."""
    if not principal.is_admin:
        raise ForbiddenException("Admin access required", code="ADMIN_REQUIRED")
    return principal


__all__ = ["get_current_principal", "get_current_principal_optional", "require_admin"]
