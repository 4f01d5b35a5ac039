from __future__ import annotations

from dataclasses import dataclass

from .errors import Forbidden
from ..stores.records import TicketRecord, UserRecord

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ALLOWED_ROLES = {ROLE_USER, ROLE_ADMIN}


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, rebuilt from the stored user on every request."""

    id: str
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: UserRecord) -> "Principal":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


def is_admin(principal: Principal | None) -> bool:
    return principal is not None and principal.role == ROLE_ADMIN


def can_access(principal: Principal | None, ticket: TicketRecord) -> bool:
    if principal is None:
        return False
    if is_admin(principal):
        return True
    # anonymous tickets have no owner, so only admins get past this
    return ticket.user_id is not None and ticket.user_id == principal.id


def assert_access(principal: Principal | None, ticket: TicketRecord) -> None:
    if not can_access(principal, ticket):
        raise Forbidden("Access denied")


def require_admin(principal: Principal | None) -> None:
    if not is_admin(principal):
        raise Forbidden("Admin privileges required")
