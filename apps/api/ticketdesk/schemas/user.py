from datetime import datetime

from .base import CamelModel


class UserOut(CamelModel):
    id: str
    name: str
    email: str
    role: str


class UserEnvelope(CamelModel):
    user: UserOut


class AdminUserOut(UserOut):
    created_at: datetime | None = None
    total: int = 0
    pending: int = 0


class AdminUserListOut(CamelModel):
    users: list[AdminUserOut]


class UserRoleUpdateIn(CamelModel):
    role: str | None = None
