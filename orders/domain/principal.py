"""
Authenticated caller identity threaded through lifecycle and query calls.
"""
from __future__ import annotations

from dataclasses import dataclass

from orders.domain.exceptions import Forbidden, Unauthorized


SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class AuthPrincipal:
    """Who is calling: a customer or an admin."""
    id: str
    is_admin: bool = False
    email: str | None = None

    @property
    def actor(self) -> str:
        """Label recorded in status history and audit entries."""
        return self.email or self.id


def require_principal(principal: AuthPrincipal | None) -> AuthPrincipal:
    if principal is None or not principal.id:
        raise Unauthorized("Authentication required")
    return principal


def require_admin(principal: AuthPrincipal | None) -> AuthPrincipal:
    principal = require_principal(principal)
    if not principal.is_admin:
        raise Forbidden("Access denied. Admin privileges required.")
    return principal
