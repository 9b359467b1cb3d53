"""Principal abstractions for authenticated callers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PrincipalRole(str, Enum):
    RENTER = "renter"
    HOST = "host"
    ADMIN = "admin"


@dataclass(frozen=True)
class UserPrincipal:
    """Authenticated caller as asserted by the identity provider."""

    user_id: str
    role: PrincipalRole = PrincipalRole.RENTER

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def is_admin(self) -> bool:
        return self.role == PrincipalRole.ADMIN
